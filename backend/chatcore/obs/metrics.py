"""Central registry for Prometheus metrics used across the chat core."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"chatcore_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"chatcore_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_EVENTS = Counter(
	"chatcore_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

IDENTITY_EVENTS = Counter(
	"chatcore_identity_events_total",
	"Registrations and login attempts by result",
	["event", "result"],
)

FRIEND_REQUESTS = Counter(
	"chatcore_friend_requests_total",
	"Friend request transitions",
	["action", "result"],
)

GROUP_EVENTS = Counter(
	"chatcore_group_events_total",
	"Group lifecycle events",
	["event"],
)

MESSAGES_SENT = Counter(
	"chatcore_messages_sent_total",
	"Messages appended per container kind",
	["kind"],
)

REACTIONS = Counter(
	"chatcore_reactions_total",
	"Reaction toggles",
	["action"],
)

STORE_COMMITS = Counter(
	"chatcore_store_commits_total",
	"Snapshot commits by backend and result",
	["backend", "result"],
)

STORE_COMMIT_LATENCY = Histogram(
	"chatcore_store_commit_duration_seconds",
	"Snapshot commit latency in seconds",
	["backend"],
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0),
)

STORE_LOADS = Counter(
	"chatcore_store_loads_total",
	"Snapshot loads at startup by result",
	["backend", "result"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_identity(event: str, result: str) -> None:
	IDENTITY_EVENTS.labels(event=event, result=result).inc()


def inc_friend_request(action: str, result: str) -> None:
	FRIEND_REQUESTS.labels(action=action, result=result).inc()


def inc_group_event(event: str) -> None:
	GROUP_EVENTS.labels(event=event).inc()


def inc_message_sent(kind: str) -> None:
	MESSAGES_SENT.labels(kind=kind).inc()


def inc_reaction(action: str) -> None:
	REACTIONS.labels(action=action).inc()


def observe_commit(backend: str, result: str, elapsed_seconds: float) -> None:
	STORE_COMMITS.labels(backend=backend, result=result).inc()
	STORE_COMMIT_LATENCY.labels(backend=backend).observe(elapsed_seconds)


def inc_store_load(backend: str, result: str) -> None:
	STORE_LOADS.labels(backend=backend, result=result).inc()
