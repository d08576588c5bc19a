# flake8: noqa

from .layer_base import Layer, LayerType

from .long_short_term_memory import GATES, LongShortTermMemoryLayer

from .perceptron import PerceptronLayer

from .probabilistic import (
    COMPETITIVE,
    LOGISTIC,
    ProbabilisticLayer,
    SOFTMAX,
)

from .propagation import (
    BackPropagation,
    ForwardPropagation,
    MultilayerBackPropagation,
    MultilayerForwardPropagation,
    RecurrentForwardPropagation,
    RecurrentState,
)

from .scaling import (
    Descriptives,
    ScalingLayer,
    ScalingMethod,
    UnscalingLayer,
    UnscalingMethod,
)
