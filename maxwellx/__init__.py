import jax

jax.config.update("jax_enable_x64", True)  # operator algebra and energy checks assume float64

__version__ = "0.1.0"
