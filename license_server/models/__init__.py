from .license import License
