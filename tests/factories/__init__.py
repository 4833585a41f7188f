"""Test data factories."""

from tests.factories.widget import GadgetFactory, WidgetFactory


__all__ = [
    "GadgetFactory",
    "WidgetFactory",
]
