"""
Owner-lifecycle-aware polling cleanup.

LifecycleCoordinator records which component owns which documents and on
which route it lives. Navigation, unmount, page unload and staleness events
cancel the polling sessions whose owner is gone.
"""

import logging
import time
from collections.abc import Callable, Iterable

from ..models.lifecycle import ComponentContext, LifecycleStatistics, OldestComponent
from ..models.session import PollingConfig
from ..utils.exceptions import ComponentNotFoundError
from .poller import PollingHandle, StatusPoller

logger = logging.getLogger(__name__)


class LifecycleCoordinator:
    """
    Tracks component ownership of polled documents.

    Attributes:
        current_route: Route the client is currently on
    """

    def __init__(
        self,
        poller: StatusPoller,
        initial_route: str = "/",
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._poller = poller
        self._contexts: dict[str, ComponentContext] = {}
        self._clock = clock
        self.current_route = initial_route

    def _owners(self, document_id: str) -> list[str]:
        return [
            component_id
            for component_id, context in self._contexts.items()
            if document_id in context.document_ids
        ]

    def register_component(
        self,
        component_id: str,
        document_ids: Iterable[str] = (),
        route: str | None = None,
    ) -> ComponentContext:
        """
        Register a component and the documents it polls.

        Args:
            component_id: Owner identifier
            document_ids: Documents owned by the component
            route: Route of the component, defaults to the current route

        Returns:
            The new ComponentContext

        Note:
            Re-registering replaces the previous context without cancelling anything.
        """
        context = ComponentContext(
            component_id=component_id,
            document_ids=list(dict.fromkeys(document_ids)),
            route=route or self.current_route,
            registration_time=self._clock(),
        )
        self._contexts[component_id] = context
        logger.info(
            f"Registered component {component_id} on {context.route} "
            f"with {len(context.document_ids)} documents ({len(self._contexts)} components)"
        )
        return context

    def unregister_component(self, component_id: str) -> bool:
        """
        Unregister a component and stop polling the documents only it owned.

        Returns:
            True if the component was registered
        """
        context = self._contexts.pop(component_id, None)
        if context is None:
            logger.warning(f"Cannot unregister unknown component {component_id}")
            return False

        cleaned = [
            document_id for document_id in context.document_ids if not self._owners(document_id)
        ]
        for document_id in cleaned:
            self._poller.cleanup(document_id)

        logger.info(
            f"Unregistered component {component_id}: cleaned {len(cleaned)} documents, "
            f"{len(self._contexts)} components remaining"
        )
        return True

    def add_document(self, component_id: str, document_id: str) -> bool:
        """
        Add a document to a component's context.

        Returns:
            True if the document was added, False if the component is unknown
            or already owned it
        """
        context = self._contexts.get(component_id)
        if context is None:
            logger.warning(f"Cannot add document to unknown component {component_id}")
            return False
        if document_id in context.document_ids:
            return False
        context.document_ids.append(document_id)
        logger.debug(f"Added document {document_id} to component {component_id}")
        return True

    def remove_document(self, component_id: str, document_id: str) -> bool:
        """
        Remove a document from a component, cancelling its polling if no one else owns it.

        Returns:
            True if the component owned the document
        """
        context = self._contexts.get(component_id)
        if context is None:
            logger.warning(f"Cannot remove document from unknown component {component_id}")
            return False
        if document_id not in context.document_ids:
            return False

        context.document_ids.remove(document_id)
        if not self._owners(document_id):
            self._poller.cleanup(document_id)
        logger.debug(f"Removed document {document_id} from component {component_id}")
        return True

    def begin_polling(
        self,
        component_id: str,
        document_id: str,
        document_type: str = "unknown",
        config: PollingConfig | None = None,
    ) -> PollingHandle:
        """
        Attach a document to a component and start polling it.

        Args:
            component_id: Registered owner
            document_id: Document GUID, tracked as uploaded
            document_type: Free-text classification for logs
            config: Optional polling configuration

        Returns:
            PollingHandle of the (possibly already running) session

        Raises:
            ComponentNotFoundError: If the component is not registered
            ValidationError: If the document cannot be polled; ownership is rolled back
        """
        if component_id not in self._contexts:
            raise ComponentNotFoundError(component_id)

        added = self.add_document(component_id, document_id)
        try:
            return self._poller.begin(document_id, document_type, config)
        except Exception:
            if added:
                self._contexts[component_id].document_ids.remove(document_id)
            raise

    def handle_route_change(self, new_route: str) -> list[str]:
        """
        Unregister components left behind by a navigation and reap orphans.

        Args:
            new_route: Route navigated to

        Returns:
            IDs of the components that were unregistered
        """
        previous_route = self.current_route
        stale = [
            component_id
            for component_id, context in self._contexts.items()
            if context.route not in (previous_route, new_route)
        ]
        logger.info(f"Route change {previous_route} -> {new_route}")
        for component_id in stale:
            logger.info(f"Cleaning up component {component_id} due to route change")
            self.unregister_component(component_id)

        self.current_route = new_route
        self.reap_orphaned_sessions()
        return stale

    def reap_orphaned_sessions(self) -> int:
        """
        Cancel active sessions whose document no component owns.

        Returns:
            Number of sessions cancelled
        """
        owned = {
            document_id
            for context in self._contexts.values()
            for document_id in context.document_ids
        }
        orphaned = [
            document_id
            for document_id in self._poller.get_active_polling_documents()
            if document_id not in owned
        ]
        for document_id in orphaned:
            logger.info(f"Cleaning up orphaned polling for document {document_id}")
            self._poller.cleanup(document_id)
        if orphaned:
            logger.info(f"Cleaned up {len(orphaned)} orphaned polling sessions")
        return len(orphaned)

    def handle_page_unload(self) -> None:
        """Cancel all polling and forget every component."""
        logger.info(f"Page unload: cleaning up all polling ({len(self._contexts)} components)")
        self._poller.cleanup_all()
        self._contexts.clear()

    def handle_visibility_change(self, hidden: bool) -> None:
        self._poller.set_background_mode(hidden)

    def cleanup_stale_components(self, max_age_ms: int = 300000) -> int:
        """
        Unregister components registered longer than max_age_ms ago.

        Returns:
            Number of components unregistered
        """
        now = self._clock()
        stale = [
            component_id
            for component_id, context in self._contexts.items()
            if (now - context.registration_time) * 1000 > max_age_ms
        ]
        for component_id in stale:
            logger.info(f"Cleaning up stale component {component_id}")
            self.unregister_component(component_id)
        if stale:
            logger.info(f"Cleaned up {len(stale)} stale components")
        return len(stale)

    def get_component_context(self, component_id: str) -> ComponentContext | None:
        return self._contexts.get(component_id)

    def get_registered_components(self) -> list[ComponentContext]:
        return list(self._contexts.values())

    def get_polling_documents_for_route(self, route: str | None = None) -> list[str]:
        target = route or self.current_route
        documents: dict[str, None] = {}
        for context in self._contexts.values():
            if context.route == target:
                documents.update(dict.fromkeys(context.document_ids))
        return list(documents)

    def is_component_registered(self, component_id: str) -> bool:
        return component_id in self._contexts

    def lifecycle_statistics(self) -> LifecycleStatistics:
        """Component counts and ages."""
        contexts = list(self._contexts.values())
        if not contexts:
            return LifecycleStatistics()

        now = self._clock()
        ages_ms = [(now - context.registration_time) * 1000 for context in contexts]
        oldest = min(contexts, key=lambda context: context.registration_time)
        routes = {context.route for context in contexts if context.document_ids}

        return LifecycleStatistics(
            total_components=len(contexts),
            total_tracked_documents=sum(len(context.document_ids) for context in contexts),
            routes_with_polling=len(routes),
            average_component_age_ms=round(sum(ages_ms) / len(ages_ms)),
            oldest_component=OldestComponent(
                component_id=oldest.component_id,
                age_ms=round((now - oldest.registration_time) * 1000),
                document_count=len(oldest.document_ids),
            ),
        )
