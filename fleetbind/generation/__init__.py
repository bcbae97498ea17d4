"""Configuration, declaration loading and Terraform workspace generation."""
