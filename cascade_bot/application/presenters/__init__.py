from .cascade_presenter import CascadePresenter

__all__ = ["CascadePresenter"]
