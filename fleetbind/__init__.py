"""fleetbind: key-correlated declarative binder.

Sub-packages:

- `binding`          (declaration store, dependency ordering, correlation, coalescing)
- `generation`       (configuration, declaration files, Terraform rendering + targeting)
- `materialization`  (materializers: predicted outputs, state files, Terraform CLI)
- `api`              (FastAPI binding service)
"""

__version__ = "0.3.0"

__all__ = ["binding", "generation", "materialization", "api"]
