# flake8: noqa

from .activation_functions import (
    ActivationFunction,
    calculate_activations,
    calculate_activations_derivatives,
    calculate_activations_second_derivatives,
    clip_combinations,
    get_activation_function,
)
