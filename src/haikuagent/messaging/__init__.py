"""Messaging domain — signing, relay publication and event subscription."""

from haikuagent.messaging.relay import Publisher
from haikuagent.messaging.relay import RelayClient
from haikuagent.messaging.signing import build_typed_data
from haikuagent.messaging.signing import Credentials
from haikuagent.messaging.signing import MessageDomain
from haikuagent.messaging.signing import sign_message
from haikuagent.messaging.signing import verify_signed_message
from haikuagent.messaging.subscription import build_subscription_query
from haikuagent.messaging.subscription import graphql_type_name
from haikuagent.messaging.subscription import normalize_event
from haikuagent.messaging.subscription import ToriiSubscription

__all__ = [
    "Credentials",
    "MessageDomain",
    "Publisher",
    "RelayClient",
    "ToriiSubscription",
    "build_subscription_query",
    "build_typed_data",
    "graphql_type_name",
    "normalize_event",
    "sign_message",
    "verify_signed_message",
]
