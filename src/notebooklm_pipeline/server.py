"""NotebookLM Pipeline MCP Server."""

import argparse
import functools
import json
import logging
import os
import secrets
import time
from typing import Any

from fastmcp import FastMCP
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from . import __version__
from . import constants
from .auth import AuthCookies, parse_cookie_header, save_cookies_to_cache, validate_cookies
from .pipeline import Pipeline, UploadFile, build_default_pipeline

# MCP request/response logger
mcp_logger = logging.getLogger("notebooklm_pipeline.mcp")

# Initialize MCP server
mcp = FastMCP(
    name="notebooklm-pipeline",
    instructions="""NotebookLM Pipeline - turn a PDF or webpage into a NotebookLM notebook with generated artifacts.

**Auth:** If you get authentication errors, call save_auth_cookies with the Cookie header of a signed-in notebooklm.google.com tab.
**Flow:** pipeline_start returns once the source is attached. Progress continues on scheduler ticks; call pipeline_tick (or run `notebooklm-pipeline run`) and poll pipeline_status until status is completed or error.""",
)


# Health check endpoint for load balancers and monitoring
@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for load balancers and monitoring."""
    return JSONResponse({
        "status": "healthy",
        "service": "notebooklm-pipeline",
        "version": __version__,
    })


# Global state
_pipeline: Pipeline | None = None
_api_key: str | None = os.environ.get("NOTEBOOKLM_PIPELINE_API_KEY")


def validate_api_key(request: Request) -> JSONResponse | None:
    """Validate API key from Authorization header.

    Returns None if auth passes, JSONResponse with error if auth fails.
    """
    # Skip auth if no API key configured
    if not _api_key:
        return None

    # Allow health check without auth (for load balancers)
    if request.url.path == "/health":
        return None

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return JSONResponse(
            {"error": "Missing or invalid Authorization header. Use 'Bearer <api_key>'"},
            status_code=401
        )

    provided_key = auth_header[7:]  # Remove "Bearer " prefix
    if not secrets.compare_digest(provided_key, _api_key):
        return JSONResponse({"error": "Invalid API key"}, status_code=401)

    return None


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce API key authentication for HTTP transport."""

    async def dispatch(self, request: Request, call_next):
        auth_error = validate_api_key(request)
        if auth_error:
            return auth_error
        return await call_next(request)


def logged_tool():
    """Decorator that combines @mcp.tool() with MCP request/response logging."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            tool_name = func.__name__
            if mcp_logger.isEnabledFor(logging.DEBUG):
                params = {k: v for k, v in kwargs.items() if v is not None}
                mcp_logger.debug(f"MCP Request: {tool_name}({json.dumps(params, default=str)[:1000]})")

            result = func(*args, **kwargs)

            if mcp_logger.isEnabledFor(logging.DEBUG):
                result_str = json.dumps(result, default=str)
                if len(result_str) > 1000:
                    result_str = result_str[:1000] + "..."
                mcp_logger.debug(f"MCP Response: {tool_name} -> {result_str}")

            return result
        return mcp.tool()(wrapper)
    return decorator


def get_pipeline() -> Pipeline:
    """Get or create the pipeline bound to the home directory."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_default_pipeline()
    return _pipeline


def _state_response(state) -> dict[str, Any]:
    data = state.to_dict()
    return {
        "status": "success",
        "pipeline_status": data.pop("status"),
        **data,
    }


@logged_tool()
def save_auth_cookies(cookies: str) -> dict[str, Any]:
    """Save NotebookLM cookies for the pipeline.

    Args:
        cookies: Cookie header value copied from a signed-in notebooklm.google.com request
    """
    global _pipeline
    try:
        parsed = parse_cookie_header(cookies)
        if not validate_cookies(parsed):
            return {
                "status": "error",
                "error": "Missing required cookies (SID, HSID, SSID, APISID, SAPISID).",
            }

        cache_path = save_cookies_to_cache(AuthCookies(cookies=parsed, extracted_at=time.time()))
        # Force the next call to build a client with the new cookies
        if _pipeline is not None:
            _pipeline.close()
        _pipeline = None
        return {
            "status": "success",
            "message": f"Saved {len(parsed)} cookies to {cache_path}",
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}


@logged_tool()
def pipeline_start(url: str, source_kind: str = "pdf", page_url: str | None = None) -> dict[str, Any]:
    """Start a pipeline for a PDF or webpage URL.

    Authenticates, creates a notebook and attaches the source before
    returning. Ingestion and artifact generation continue on ticks.

    Args:
        url: PDF or webpage URL
        source_kind: pdf|webpage (default: pdf)
        page_url: Page the PDF was found on, sent as Referer by the download fallback
    """
    try:
        if source_kind not in constants.SOURCE_KINDS:
            return {
                "status": "error",
                "error": f"Unknown source_kind '{source_kind}'. Use: {', '.join(constants.SOURCE_KINDS)}",
            }
        state = get_pipeline().start_pipeline(url, source_kind=source_kind, page_url=page_url)
        return _state_response(state)
    except Exception as e:
        return {"status": "error", "error": str(e)}


@logged_tool()
def pipeline_start_file(
    file_name: str,
    file_data_base64: str,
    mime_type: str = "application/pdf",
) -> dict[str, Any]:
    """Start a pipeline that uploads a local file.

    Args:
        file_name: Name shown for the source in NotebookLM
        file_data_base64: File content, base64-encoded
        mime_type: Content type (default: application/pdf)
    """
    try:
        if not file_name or not file_data_base64:
            return {"status": "error", "error": "Missing file payload or filename"}
        # Decoded (and validated) by the client at upload time
        upload = UploadFile(filename=file_name, file_data=file_data_base64, mime_type=mime_type)
        state = get_pipeline().start_pipeline_from_file(upload)
        return _state_response(state)
    except Exception as e:
        return {"status": "error", "error": str(e)}


@logged_tool()
def pipeline_status() -> dict[str, Any]:
    """Get the current pipeline state: step, progress detail and artifact tasks."""
    try:
        return _state_response(get_pipeline().get_state())
    except Exception as e:
        return {"status": "error", "error": str(e)}


@logged_tool()
def pipeline_tick() -> dict[str, Any]:
    """Run one polling tick of the active phase. No-op when nothing is running."""
    try:
        return _state_response(get_pipeline().handle_wake())
    except Exception as e:
        return {"status": "error", "error": str(e)}


@logged_tool()
def pipeline_abort() -> dict[str, Any]:
    """Stop monitoring the running pipeline. The notebook is left as is."""
    try:
        return _state_response(get_pipeline().abort_pipeline())
    except Exception as e:
        return {"status": "error", "error": str(e)}


@logged_tool()
def pipeline_reset() -> dict[str, Any]:
    """Clear the pipeline state back to idle."""
    try:
        return _state_response(get_pipeline().reset_state())
    except Exception as e:
        return {"status": "error", "error": str(e)}


def main():
    """Run the MCP server.

    Supports multiple transports:
    - stdio (default): For desktop apps like Claude Desktop
    - http: Streamable HTTP for network access
    - sse: Legacy SSE transport (backwards compatibility)

    Configuration via CLI args or environment variables.
    """
    parser = argparse.ArgumentParser(
        description="NotebookLM Pipeline MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  NOTEBOOKLM_PIPELINE_TRANSPORT   Transport type (stdio, http, sse)
  NOTEBOOKLM_PIPELINE_HOST        Host to bind (default: 127.0.0.1)
  NOTEBOOKLM_PIPELINE_PORT        Port to listen on (default: 8000)
  NOTEBOOKLM_PIPELINE_PATH        MCP endpoint path (default: /mcp)
  NOTEBOOKLM_PIPELINE_DEBUG       Enable debug logging (true/false)
  NOTEBOOKLM_PIPELINE_API_KEY     Bearer API key for HTTP/SSE

Examples:
  notebooklm-pipeline-mcp                              # Default stdio transport
  notebooklm-pipeline-mcp --transport http             # HTTP on localhost:8000
  notebooklm-pipeline-mcp --transport http --port 3000 # HTTP on custom port
  notebooklm-pipeline-mcp --debug                      # Log MCP calls + NotebookLM API traffic
        """
    )

    parser.add_argument(
        "--transport", "-t",
        choices=["stdio", "http", "sse"],
        default=os.environ.get("NOTEBOOKLM_PIPELINE_TRANSPORT", "stdio"),
        help="Transport protocol (default: stdio)"
    )
    parser.add_argument(
        "--host", "-H",
        default=os.environ.get("NOTEBOOKLM_PIPELINE_HOST", "127.0.0.1"),
        help="Host to bind for HTTP/SSE (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=int(os.environ.get("NOTEBOOKLM_PIPELINE_PORT", "8000")),
        help="Port for HTTP/SSE transport (default: 8000)"
    )
    parser.add_argument(
        "--path",
        default=os.environ.get("NOTEBOOKLM_PIPELINE_PATH", "/mcp"),
        help="MCP endpoint path for HTTP (default: /mcp)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=os.environ.get("NOTEBOOKLM_PIPELINE_DEBUG", "").lower() == "true",
        help="Enable debug logging (MCP tool calls + NotebookLM API requests/responses)"
    )
    parser.add_argument(
        "--api-key",
        default=os.environ.get("NOTEBOOKLM_PIPELINE_API_KEY"),
        help="API key for authentication (also via NOTEBOOKLM_PIPELINE_API_KEY env var)"
    )
    args = parser.parse_args()

    global _api_key
    _api_key = args.api_key

    if args.debug:
        logging.basicConfig(
            level=logging.WARNING,  # Suppress most logs
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Shared handler and formatter for debug loggers
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

        for name in ("notebooklm_pipeline.mcp", "notebooklm_pipeline.api", "notebooklm_pipeline.pipeline"):
            debug_logger = logging.getLogger(name)
            debug_logger.setLevel(logging.DEBUG)
            debug_logger.addHandler(handler)

        print("Debug logging: ENABLED (MCP tool calls + pipeline + NotebookLM API traffic)")

    if args.transport in ("http", "sse"):
        endpoint = args.path if args.transport == "http" else "/sse"
        print(f"Starting NotebookLM Pipeline MCP server ({args.transport.upper()}) on http://{args.host}:{args.port}{endpoint}")
        print(f"Health check: http://{args.host}:{args.port}/health")
        if _api_key:
            print("API key authentication: ENABLED")
        else:
            print("WARNING: No API key set. Server is publicly accessible!")
            print("         Use --api-key or NOTEBOOKLM_PIPELINE_API_KEY to secure your server.")

        if _api_key:
            import uvicorn

            if args.transport == "http":
                base_app = mcp.http_app(path=args.path)
            else:
                base_app = mcp.http_app(transport="sse")

            uvicorn.run(APIKeyAuthMiddleware(base_app), host=args.host, port=args.port)
        elif args.transport == "http":
            mcp.run(transport="http", host=args.host, port=args.port, path=args.path)
        else:
            mcp.run(transport="sse", host=args.host, port=args.port)
    else:
        # Default: stdio transport (no message - stdio should be silent)
        mcp.run()

    return 0


if __name__ == "__main__":
    exit(main())
