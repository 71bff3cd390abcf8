"""Dependency injection container for the workflow engine."""

from dependency_injector import containers, providers

from crm_workflows.core.config import Settings
from crm_workflows.core.database import SQLRecordStore
from crm_workflows.services.automation import RuleEngine
from crm_workflows.services.dispatcher import TriggerDispatcher
from crm_workflows.services.email import EmailSender
from crm_workflows.services.execution.executor import WorkflowExecutor
from crm_workflows.services.executions import ExecutionService
from crm_workflows.services.node_executor import NodeExecutor
from crm_workflows.services.notifier import Notifier


class Container(containers.DeclarativeContainer):
    """Engine dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Record store (call startup() before use, shutdown() on exit)
    store = providers.Singleton(
        SQLRecordStore,
        settings=settings
    )

    # Collaborators
    email_sender = providers.Singleton(
        EmailSender,
        settings=settings,
        store=store
    )

    notifier = providers.Singleton(
        Notifier,
        store=store
    )

    # Engine
    node_executor = providers.Singleton(
        NodeExecutor,
        store=store,
        email_sender=email_sender,
        notifier=notifier,
        settings=settings
    )

    executor = providers.Singleton(
        WorkflowExecutor,
        store=store,
        node_executor=node_executor
    )

    dispatcher = providers.Singleton(
        TriggerDispatcher,
        store=store,
        executor=executor
    )

    rule_engine = providers.Singleton(
        RuleEngine,
        store=store,
        node_executor=node_executor
    )

    execution_service = providers.Singleton(
        ExecutionService,
        store=store,
        executor=executor,
        settings=settings
    )


# Global container instance
container = Container()
