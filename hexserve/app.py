from hexserve.config import ServerConfig
from hexserve.server.pipeline import RequestPipeline
from hexserve.routes.health import HealthHandler
from hexserve.routes.root import RootHandler
from hexserve.proxy.forwarder import ProxyForwarder, ProxyHandler
from hexserve.fileserver.handler import FileBrowserHandler


def build_pipeline(config:ServerConfig) -> RequestPipeline:
	"""Handlers in dispatch order, the not-found fallback is implied"""
	handlers = [HealthHandler(config)]
	if config.url_prefix != '':
		handlers.append(RootHandler(config.url_prefix))
	if config.proxy_enabled is True:
		forwarder = ProxyForwarder(config.riot_api_key, config.riot_api_base_url, timeout=config.proxy_timeout)
		handlers.append(ProxyHandler(forwarder, config.proxy_prefix))
	handlers.append(FileBrowserHandler(config.serve_dir, config.url_prefix))
	return RequestPipeline(handlers)
