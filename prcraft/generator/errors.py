"""Fatal netlist emission errors."""


class GenerationError(Exception):
    """Emission of a controller netlist was aborted."""


class NameCollisionError(GenerationError):
    """Two divider control signals share a name."""


class ShapeError(GenerationError):
    """A primitive cannot be sized, e.g. a divider without a width."""
