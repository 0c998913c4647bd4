"""FastAPI dependencies for the process-wide services built in the lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from gigflow import AccountService, MarketplaceService, MessagingService, NotificationBus
from gigflow.storage import EntityStore


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_bus(request: Request) -> NotificationBus:
    return request.app.state.bus


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_marketplace(request: Request) -> MarketplaceService:
    return request.app.state.marketplace


def get_messaging(request: Request) -> MessagingService:
    return request.app.state.messaging


# Type aliases for dependency injection
Store = Annotated[EntityStore, Depends(get_store)]
Bus = Annotated[NotificationBus, Depends(get_bus)]
Accounts = Annotated[AccountService, Depends(get_accounts)]
Marketplace = Annotated[MarketplaceService, Depends(get_marketplace)]
Messaging = Annotated[MessagingService, Depends(get_messaging)]
