from importlib import import_module

modules = [
    'auth',
    'scientists',
    'research_activities',
    'ibc_applications',
    'pmo_applications',
    'change_requests',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
