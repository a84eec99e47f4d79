from importlib import import_module

modules = [
    'auth',
    'audit',
    'evidence',
    'sample_plans',
    'units',
    'users',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
