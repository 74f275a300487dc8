"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from ecomod.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a workflow contract.

    This is called at stage boundaries to verify the preceding stage
    produced the guaranteed invariants. It is fail-fast: no recovery,
    no fallback, no silence.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.

    message : str
        Error message explaining the contract violation (for debugging).

    Raises
    ------
    ContractViolation
        If condition is False.

    Examples
    --------
    >>> require("band" in ds.dims, "Raster contract: missing 'band' dimension")
    >>> require(len(df) > 0, "CV contract: at least one fold score expected")
    """
    if not condition:
        raise ContractViolation(message)
