"""Driver exceptions that mean the store could not serve a request."""

from cassandra import DriverException, OperationTimedOut, RequestExecutionException
from cassandra.cluster import NoHostAvailable


STORAGE_ERRORS: tuple[type[Exception], ...] = (
    DriverException,
    NoHostAvailable,
    OperationTimedOut,
    RequestExecutionException,
)
