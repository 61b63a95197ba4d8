import re
from typing import List, Tuple, Dict
from urllib.parse import urlsplit

from hexserve import logger
from hexserve.errors import ValidationError
from hexserve.server.messages import HTTPRequest

BASE_PATH_PARAM = 'requestBasePath'
RIOT_HOSTNAME_PATTERN = re.compile(r'[a-z0-9]+\.api\.riotgames\.com', re.IGNORECASE)


def is_valid_riot_api_url(url:str) -> bool:
	"""True for https://{region}.api.riotgames.com style URLs"""
	try:
		parts = urlsplit(url)
		hostname = parts.hostname
		# port access raises for garbage like 'host:abc'
		parts.port
	except ValueError:
		return False
	if parts.scheme != 'https':
		return False
	if hostname is None:
		return False
	return RIOT_HOSTNAME_PATTERN.fullmatch(hostname) is not None

def validate_base_path(values:List[str]) -> Tuple[str, List[Dict[str, str]]]:
	"""
	Checks every value given for the base path override.
	Returns (override, None) where override is None when the parameter was absent, or (None, details).
	"""
	if len(values) == 0:
		return None, None
	if len(values) > 1:
		return None, [{
			'field' : BASE_PATH_PARAM,
			'message' : '%s must be a string' % BASE_PATH_PARAM,
			'value' : values,
		}]
	value = values[0].strip()
	if is_valid_riot_api_url(value) is False:
		return None, [{
			'field' : BASE_PATH_PARAM,
			'message' : '%s must be a valid Riot Games API URL (https://{region}.api.riotgames.com)' % BASE_PATH_PARAM,
			'value' : values[0],
		}]
	return value, None

def validate_proxy_request(request:HTTPRequest) -> str:
	"""
	Validates the proxy control parameters of a request and returns the base URL override, if any.
	Raises ValidationError before anything is sent upstream.
	"""
	values = [v for k, v in request.query_items() if k == BASE_PATH_PARAM]
	override, details = validate_base_path(values)
	if details is not None:
		logger.warning('Request validation failed', extra={'context': {
			'type' : 'warning',
			'url' : request.url,
			'method' : request.method,
			'errors' : details,
			'query' : request.query,
			'ip' : request.peer_ip,
		}})
		raise ValidationError(details)
	return override
