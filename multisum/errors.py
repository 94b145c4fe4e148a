class MultisumError(RuntimeError):
    """Base class for failures of a multi-vector sum invocation."""


class AllocationError(MultisumError):
    """Device memory could not be reserved for a buffer."""


class TransferError(MultisumError):
    """A host/device copy did not complete or came back with the wrong size."""


class KernelLaunchError(MultisumError):
    """The launch configuration was rejected or the kernel faulted."""
