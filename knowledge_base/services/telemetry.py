"""OpenTelemetry logging and tracing for knowledge base tool calls"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace
from opentelemetry._logs import SeverityNumber, set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from knowledge_base.config import config

logger = logging.getLogger(__name__)

MAX_BODY_TEXT_LENGTH = 200
MAX_ERROR_MESSAGE_LENGTH = 500


def _signal_endpoint(signal: str) -> str:
    """Append the OTLP/HTTP signal path (v1/logs, v1/traces) if missing"""
    endpoint = config.otel_endpoint
    suffix = f"/v1/{signal}"
    if endpoint.endswith(suffix):
        return endpoint
    return f"{endpoint.rstrip('/')}{suffix}"


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class TelemetryService:
    """Export tool call logs and HTTP traces to an OpenTelemetry collector"""

    def __init__(self):
        self.logging_enabled = config.otel_logging_enabled
        self.tracing_enabled = config.otel_tracing_enabled
        self.logger_provider = None
        self.tracer_provider = None
        self.otel_logger = None

        if self.logging_enabled:
            try:
                self._initialize_logging()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel logging: {e}. Logging disabled.")
                self.logging_enabled = False

        if self.tracing_enabled:
            try:
                self._initialize_tracing()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel tracing: {e}. Tracing disabled.")
                self.tracing_enabled = False

    def _resource(self) -> Resource:
        return Resource(
            attributes={
                SERVICE_NAME: config.otel_service_name,
                SERVICE_VERSION: config.otel_service_version,
            }
        )

    def _initialize_logging(self) -> None:
        """Initialize OpenTelemetry logging with OTLP log exporter"""
        self.logger_provider = LoggerProvider(resource=self._resource())

        log_endpoint = _signal_endpoint("logs")
        self.logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=log_endpoint))
        )
        set_logger_provider(self.logger_provider)

        self.otel_logger = self.logger_provider.get_logger(__name__)
        logger.info(f"OpenTelemetry logging initialized with endpoint: {log_endpoint}")

    def _initialize_tracing(self) -> None:
        """Initialize OpenTelemetry tracing with OTLP trace exporter"""
        self.tracer_provider = TracerProvider(resource=self._resource())

        trace_endpoint = _signal_endpoint("traces")
        self.tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=trace_endpoint))
        )
        trace.set_tracer_provider(self.tracer_provider)

        # httpx instrumentation happens in _ensure_instrumentation_initialized(),
        # before the embedding provider creates its client
        logger.info(f"OpenTelemetry tracing initialized with endpoint: {trace_endpoint}")

    def build_attributes(
        self,
        tool_name: str,
        text: str | None,
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> dict[str, str | int | float | bool]:
        """
        Build low-cardinality log attributes for a tool call

        User ids are never attached. Content and results are only attached when
        otel_log_full_results is enabled.
        """
        success = error is None and (response is None or response.get("success", True))
        attributes: dict[str, str | int | float | bool] = {
            "mcp.tool.name": tool_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "response.success": success,
        }

        if text is not None:
            attributes["request.text_length"] = len(text)
            if config.otel_log_full_results:
                attributes["request.full_text"] = text

        if response:
            attributes["response.size_bytes"] = len(json.dumps(response, default=str))

            if tool_name == "get_information":
                results = response.get("results", [])
                attributes["response.result_count"] = len(results)
                if results:
                    attributes["response.top_similarity"] = float(results[0]["similarity"])
                if config.otel_log_full_results:
                    attributes["response.results_json"] = json.dumps(results, default=str)

            elif tool_name == "add_resource" and response.get("error_type"):
                attributes["error.type"] = str(response["error_type"])

        if error:
            attributes["error.type"] = type(error).__name__
            attributes["error.message"] = _truncate(str(error), MAX_ERROR_MESSAGE_LENGTH)

        return attributes

    def log_tool_call(
        self,
        tool_name: str,
        text: str | None,
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        """
        Log a tool call and its outcome to OpenTelemetry

        Args:
            tool_name: Name of the MCP tool being called
            text: The remembered content or recall question
            response: The tool response (if produced)
            error: The error (if the tool raised)
        """
        if not self.logging_enabled or not self.otel_logger:
            return

        try:
            attributes = self.build_attributes(tool_name, text, response, error)
            success = bool(attributes["response.success"])

            log_body_parts = [f"[{tool_name}]", "SUCCESS" if success else "FAILED"]
            if response and tool_name == "get_information":
                log_body_parts.append(f"results={attributes['response.result_count']}")
            if "error.type" in attributes:
                log_body_parts.append(f"error={attributes['error.type']}")

            severity = logging.INFO if success else logging.ERROR

            self.otel_logger.emit(
                body=" ".join(log_body_parts),
                severity_number=SeverityNumber(self._severity_to_number(severity)),
                attributes=attributes,
                timestamp=int(datetime.now(timezone.utc).timestamp() * 1e9),
            )

        except Exception as e:
            # Telemetry must never fail a tool call
            logger.warning(f"Failed to log telemetry: {e}")

    def _severity_to_number(self, level: int) -> int:
        """Convert Python logging level to OpenTelemetry severity number"""
        if level >= logging.CRITICAL:
            return 21  # FATAL
        elif level >= logging.ERROR:
            return 17  # ERROR
        elif level >= logging.WARNING:
            return 13  # WARN
        elif level >= logging.INFO:
            return 9  # INFO
        else:
            return 5  # DEBUG


# Global telemetry service instance
_telemetry_service: TelemetryService | None = None
_instrumentation_initialized = False


def _ensure_instrumentation_initialized() -> None:
    """Instrument httpx once so embedding provider requests are traced"""
    global _instrumentation_initialized
    if not _instrumentation_initialized and config.otel_tracing_enabled:
        try:
            HTTPXClientInstrumentor().instrument()
            _instrumentation_initialized = True
            logger.info("HTTP request tracing instrumentation initialized")
        except Exception as e:
            logger.warning(f"Failed to initialize HTTP tracing instrumentation: {e}")


def get_telemetry_service() -> TelemetryService:
    """Get or create the global telemetry service instance"""
    global _telemetry_service
    _ensure_instrumentation_initialized()
    if _telemetry_service is None:
        _telemetry_service = TelemetryService()
    return _telemetry_service
