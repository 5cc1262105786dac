# backend/asset_transforms/services/transform_events.py
"""
Observer registry for transform lifecycle hooks.

Services fire hooks at fixed points (before/after saving or deleting a
definition, while generating a rendition, around deleting renditions).
Observers are plain callables taking one event object.
"""

from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, DefaultDict, List, Optional, Union

from ..enums import LoggerName, LogSource, TransformHook
from ..models.asset_model import Asset
from ..models.transform_index_model import TransformIndex
from ..models.transform_model import TransformDefinition
from .logger import get_service_logger

logger = get_service_logger(LoggerName.TRANSFORM_PIPELINE, LogSource.PIPELINE)


@dataclass
class TransformDefinitionEvent:
    """Fired around saving and deleting a transform definition."""

    transform: Optional[TransformDefinition]
    is_new: bool = False


@dataclass
class GenerateTransformEvent:
    """
    Fired after the image has been manipulated and before it is saved.

    Observers may render the output themselves and set temp_path; the
    generator then writes that file instead of saving the image.
    """

    index: TransformIndex
    asset: Asset
    image: Any
    temp_path: Optional[Union[str, Path]] = None


@dataclass
class TransformImageEvent:
    """Fired around deleting one rendition file of an asset."""

    asset: Asset
    index: TransformIndex


Observer = Callable[[Any], None]


class TransformEvents:
    """Hook name -> ordered observers."""

    def __init__(self) -> None:
        self._observers: DefaultDict[TransformHook, List[Observer]] = defaultdict(list)

    def on(self, hook: TransformHook, observer: Observer) -> None:
        self._observers[TransformHook(hook)].append(observer)

    def off(self, hook: TransformHook, observer: Observer) -> None:
        observers = self._observers.get(TransformHook(hook), [])
        if observer in observers:
            observers.remove(observer)

    def has_observers(self, hook: TransformHook) -> bool:
        return bool(self._observers.get(TransformHook(hook)))

    def fire(self, hook: TransformHook, event: Any) -> Any:
        """
        Call every observer of hook in registration order.

        Observer exceptions propagate; a failing before-hook aborts the
        operation it guards.
        """
        for observer in list(self._observers.get(TransformHook(hook), [])):
            logger.debug(
                f"Firing {TransformHook(hook).value}",
                extra_context={"observer": getattr(observer, "__name__", repr(observer))},
            )
            observer(event)
        return event
