"""
Model registry

Flask extension holding the model classes built by init_models(db), so
services look them up from the current app instead of importing them.

Usage:
    from whs_tracker.models import get_models

    def my_view():
        models = get_models()
        team = models['Team'].query.get(team_id)
"""
from typing import Any, Dict, Optional

from flask import current_app


class ModelRegistry:
    """Flask extension for centralized model access"""

    def __init__(self, app=None):
        self.models: Dict[str, Any] = {}
        if app:
            self.init_app(app)

    def init_app(self, app):
        app.extensions['models'] = self

    def register(self, models_dict: Dict[str, Any]):
        """
        Register the model classes

        Args:
            models_dict: Dictionary mapping model names to model classes
        """
        self.models = models_dict

    def get(self, model_name: str) -> Optional[Any]:
        return self.models.get(model_name)

    def __getitem__(self, model_name: str) -> Any:
        """
        Dict-like access to models

        Raises:
            KeyError: If model name is not registered
        """
        return self.models[model_name]

    def all(self) -> Dict[str, Any]:
        return self.models.copy()


# Global instance
model_registry = ModelRegistry()


def get_models() -> Dict[str, Any]:
    """
    All registered models from the current app context

    Raises:
        RuntimeError: If the registry was not initialized on the app
    """
    if 'models' not in current_app.extensions:
        raise RuntimeError(
            "ModelRegistry not initialized. "
            "Ensure model_registry.init_app(app) is called during app setup."
        )

    return current_app.extensions['models'].models


def get_db():
    """SQLAlchemy database instance of the current app"""
    return current_app.extensions['sqlalchemy']
