"""
Models describing a client invocation on the wire.

The wire shape of an invocation is
{targetName, invocationType, payload, metadata: {callerId, deadline}};
the transport maps it onto a Lambda Invoke call.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lambda_relay.models.backoff import BackoffPolicy


class InvocationType(str, Enum):
    """How the target is invoked."""

    SYNC = 'sync'
    ASYNC = 'async'

    @property
    def lambda_invocation_type(self) -> str:
        return 'RequestResponse' if self is InvocationType.SYNC else 'Event'


class InvocationMetadata(BaseModel):
    """Caller metadata propagated to the target."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    caller_id: Annotated[Optional[str], Field(
        default=None,
        description='Identifier of the calling invocation'
    )] = None

    deadline: Annotated[Optional[int], Field(
        default=None,
        description='Epoch milliseconds after which the caller no longer waits'
    )] = None


class ClientInvocation(BaseModel):
    """A single logical call to a target, built per call and never reused."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    target_name: Annotated[str, Field(
        min_length=1,
        description='Logical name of the target endpoint',
        examples=['orders']
    )]

    function_name: Annotated[str, Field(
        min_length=1,
        description='Resolved function name or ARN',
        examples=['arn:aws:lambda:us-east-1:123456789012:function:orders']
    )]

    invocation_type: Annotated[InvocationType, Field(
        default=InvocationType.SYNC,
        description='Synchronous request/response or asynchronous event invocation'
    )] = InvocationType.SYNC

    payload: Annotated[Any, Field(
        default=None,
        description='JSON-serializable payload delivered to the target'
    )] = None

    metadata: Annotated[InvocationMetadata, Field(
        default_factory=InvocationMetadata,
        description='Caller metadata'
    )]

    timeout_ms: Annotated[int, Field(
        ge=1,
        description='Per-attempt timeout before clamping to the remaining time'
    )]

    max_retries: Annotated[int, Field(
        ge=0,
        description='Retries allowed after the first attempt'
    )]

    backoff: Annotated[BackoffPolicy, Field(
        default_factory=BackoffPolicy,
        description='Delay policy between attempts'
    )]

    def to_wire(self) -> Dict[str, Any]:
        """Wire representation of the call."""
        return {
            'targetName': self.target_name,
            'invocationType': self.invocation_type.value,
            'payload': self.payload,
            'metadata': self.metadata.model_dump(by_alias=True),
        }
