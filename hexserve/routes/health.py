import os
import time
import datetime

import psutil

from hexserve.config import ServerConfig
from hexserve.server.pipeline import RequestHandler
from hexserve.server.messages import HTTPRequest, ServerResponse

HEALTH_PATH = '/health'


def process_uptime():
	"""Seconds since this process was started"""
	return max(0.0, round(time.time() - psutil.Process(os.getpid()).create_time(), 3))

def memory_usage():
	"""Resident and virtual memory of this process in MB"""
	mem = psutil.Process(os.getpid()).memory_info()
	return {
		'rss' : round(mem.rss / 1024 / 1024),
		'vms' : round(mem.vms / 1024 / 1024),
		'unit' : 'MB',
	}

def file_server_status(serve_dir:str):
	"""Returns (status, accessible) for the served directory"""
	if not os.path.exists(serve_dir):
		return 'degraded', False
	if os.path.isdir(serve_dir) and os.access(serve_dir, os.R_OK | os.X_OK):
		return 'healthy', True
	return 'unhealthy', False


class HealthHandler(RequestHandler):
	def __init__(self, config:ServerConfig):
		self.config = config

	def status(self):
		fs_status, accessible = file_server_status(self.config.serve_dir)
		overall = 'healthy'
		if fs_status != 'healthy':
			overall = fs_status

		proxy_status = 'healthy' if self.config.proxy_enabled else 'disabled'

		return {
			'status' : overall,
			'timestamp' : datetime.datetime.now(datetime.timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
			'uptime' : process_uptime(),
			'services' : {
				'fileServer' : {
					'status' : fs_status,
					'serveDir' : self.config.serve_dir,
					'urlPrefix' : self.config.url_prefix,
					'accessible' : accessible,
				},
				'riotProxy' : {
					'status' : proxy_status,
					'enabled' : self.config.proxy_enabled,
					'configured' : self.config.proxy_enabled,
					'proxyPrefix' : self.config.proxy_prefix,
					'baseUrl' : self.config.riot_api_base_url,
				},
			},
			'memory' : memory_usage(),
		}

	async def handle(self, request:HTTPRequest) -> ServerResponse:
		if request.method != 'GET' or request.path != HEALTH_PATH:
			return None
		data = self.status()
		return ServerResponse.json(200 if data['status'] == 'healthy' else 503, data)
