import os
from typing import NamedTuple, Mapping

from dotenv import load_dotenv

from hexserve.errors import ConfigurationError


def normalize_prefix(prefix:str) -> str:
	"""URL prefixes always start with / and never end with it ('/' becomes '')"""
	if not prefix.startswith('/'):
		prefix = '/' + prefix
	return prefix.rstrip('/')

def int_env(environ:Mapping[str, str], name:str, default:int) -> int:
	value = environ.get(name)
	if value is None or value.strip() == '':
		return default
	try:
		return int(value, 10)
	except ValueError:
		raise ConfigurationError('%s must be an integer, got "%s"' % (name, value))


class ServerConfig(NamedTuple):
	port: int = 3000
	host: str = '0.0.0.0'
	serve_dir: str = './public'
	url_prefix: str = '/latest'
	riot_api_key: str = ''
	riot_api_base_url: str = 'https://euw1.api.riotgames.com'
	proxy_prefix: str = '/riot-api'
	proxy_timeout: int = 30
	max_body_size: int = 1024*1024
	log_level: str = 'info'
	log_dir: str = './logs'
	environment: str = 'development'

	@property
	def proxy_enabled(self) -> bool:
		return len(self.riot_api_key) > 0

	@staticmethod
	def from_env(environ:Mapping[str, str] = None, dotenv_path:str = None):
		"""
		Builds the configuration from environment variables.
		When `environ` is not given the process environment is used, after loading a .env file into it.
		"""
		if environ is None:
			load_dotenv(dotenv_path)
			environ = os.environ

		return ServerConfig(
			port = int_env(environ, 'PORT', 3000),
			host = environ.get('HOST') or '0.0.0.0',
			serve_dir = os.path.realpath(environ.get('SERVE_DIR') or './public'),
			url_prefix = normalize_prefix(environ.get('URL_PREFIX') or '/latest'),
			riot_api_key = environ.get('RIOT_API_KEY') or '',
			riot_api_base_url = environ.get('RIOT_API_BASE_URL') or 'https://euw1.api.riotgames.com',
			proxy_prefix = normalize_prefix(environ.get('PROXY_PREFIX') or '/riot-api'),
			proxy_timeout = int_env(environ, 'PROXY_TIMEOUT', 30),
			max_body_size = int_env(environ, 'MAX_BODY_SIZE', 1024*1024),
			log_level = (environ.get('LOG_LEVEL') or 'info').lower(),
			log_dir = os.path.abspath(environ.get('LOG_DIR') or './logs'),
			environment = environ.get('ENVIRONMENT') or environ.get('NODE_ENV') or 'development',
		)

	def __repr__(self):
		t = '==== ServerConfig ====\r\n'
		for k, val in self._asdict().items():
			if k == 'riot_api_key':
				val = '<set>' if val else '<not set>'
			t += '%s: %s\r\n' % (k, val)
		return t

	__str__ = __repr__
