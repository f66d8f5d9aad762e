from typing import Callable

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.orm import Session

from retroapi.containers import Container
from retroapi.database.session import get_db
from retroapi.services.progression_service import ProgressionService


@inject
def get_progression_service(
    db: Session = Depends(get_db),
    factory: Callable[..., ProgressionService] = Depends(
        Provide[Container.services.progression_service.provider]
    ),
) -> ProgressionService:
    return factory(db=db)
