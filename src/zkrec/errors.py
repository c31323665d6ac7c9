class ZkError(Exception):
    """Root of every error raised by zkrec."""


class SynthesisError(ZkError):
    pass


class AssignmentMissing(SynthesisError):
    """A witness value was read in witness mode but was not supplied."""


class ShapeMismatch(SynthesisError):
    """A constraint references a foreign wire, or a system does not match its key."""


class SystemFrozen(SynthesisError):
    """The constraint system was mutated after it was frozen."""


class ShapeEmpty(SynthesisError):
    """The circuit emitted no constraints."""


class ConstraintUnsatisfied(SynthesisError):
    """The witness does not satisfy the relation."""


class VerifyError(ZkError):
    pass


class MalformedProof(VerifyError):
    """A proof or its public inputs do not have the shape the verifying key expects."""
