"""Base protocol for model provider adapters.

An adapter translates one provider's streaming wire protocol into the
canonical :class:`StreamChunk` sequence. The orchestrator only ever talks
to this protocol; which concrete adapter serves a request is decided by
the ProviderRegistry.
"""

from typing import Callable, List, Optional, Protocol, runtime_checkable

from .types import ProviderSendOptions, StreamChunk


# Chunk callback invoked from the adapter's stream worker thread.
StreamCallback = Callable[[StreamChunk], None]


@runtime_checkable
class AbortHandle(Protocol):
    """Capability returned by ``send_streaming`` to stop an in-flight round."""

    def abort(self) -> None:
        ...


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for provider adapters.

    Example implementation:
        class EchoProvider:
            name = "echo"

            def send_streaming(self, options, on_chunk):
                on_chunk(StreamChunk.text(options.messages[-1].content))
                on_chunk(StreamChunk.done())
                return NullHandle()

            def list_models(self):
                return ["echo-1"]
    """

    @property
    def name(self) -> str:
        """Registry name of the provider (e.g. 'ollama')."""
        ...

    def send_streaming(
        self,
        options: ProviderSendOptions,
        on_chunk: StreamCallback,
    ) -> AbortHandle:
        """Start a streaming round and return immediately.

        Every invocation, whether it succeeds, fails or is aborted, must
        end with exactly one ``done`` chunk delivered through ``on_chunk``.
        Failures are reported as one ``error`` chunk before that ``done``;
        nothing is raised past the callback once streaming has started.

        Args:
            options: Messages, model, tools and sampling parameters.
            on_chunk: Receives canonical chunks, possibly from another thread.

        Returns:
            Handle whose ``abort()`` stops the round.
        """
        ...

    def list_models(self, prefix: Optional[str] = None) -> List[str]:
        """List model ids available on the server, sorted.

        Args:
            prefix: Optional additional id prefix filter.

        Raises:
            ProviderError: When the server cannot be reached or errors.
        """
        ...
