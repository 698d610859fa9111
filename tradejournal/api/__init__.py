"""HTTP API for the trade journal."""

from aiohttp import web

VERSION = "2.0.0"

ctx_key = web.AppKey("ctx", dict)
