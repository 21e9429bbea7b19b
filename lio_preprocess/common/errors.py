"""Exception types for the preprocessing core."""


class PreprocessError(Exception):
    """Base class for preprocessing failures."""


class PrecursorError(PreprocessError):
    """
    A measurement group reached a stage without its required inputs.

    Raised when an empty inertial sequence, a missing scan, or a missing
    synchronization anchor reaches integration or undistortion. The
    synchronizer's contract prevents this; seeing it is a programming error.
    """
