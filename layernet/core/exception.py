

class ConfigurationError(ValueError):
    """ Raised when counts, shapes or identifiers given to a layer or a
    network do not agree with its configuration
    """


class StructuralError(ValueError):
    """ Raised when growing or pruning would address a layer, input or
    neuron that doesn't exist, or would disconnect the layer chain
    """


class NumericalWarning(RuntimeWarning):
    """ Issued when values are clamped to keep a computation finite
    """
