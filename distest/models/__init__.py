# Import models to make them accessible via distest.models
# and ensure they are registered with SQLAlchemy's Base metadata
from .replica import ReplicaRecord

__all__ = [
    "ReplicaRecord",
]
