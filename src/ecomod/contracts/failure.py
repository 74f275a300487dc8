"""Exception raised when a workflow stage breaks its output guarantees."""


class ContractViolation(RuntimeError):
    """Raised when a workflow contract is violated.

    A stage produced malformed output (fold ids with gaps, a cluster map
    with labels out of range, duplicate temperature days). This is a
    workflow bug, not bad user input.

    Key distinction:
    - ValueError: User/config error (handled by Pydantic or the models)
    - ContractViolation: Stage produced malformed output
    """
    pass
