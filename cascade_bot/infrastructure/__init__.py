from .entities_loader import CascadeEntities, default_entities, load_entities_from_yaml

__all__ = ["CascadeEntities", "default_entities", "load_entities_from_yaml"]
