epsilon_0          = 8.8541878128e-12 # Permittivity of free space
mu_0               = 1.25663706212e-6 # Permeability of free space
speed_of_light     = 2.99792458e8     # Speed of light in vacuum
