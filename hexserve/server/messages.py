import json
from typing import List, Tuple, Dict, AsyncIterator
from urllib.parse import urlsplit, parse_qsl


class HTTPRequest:
	"""One fully received inbound request. Header names are lowercase."""
	def __init__(self, method:str, target:str, headers:List[Tuple[str, str]] = None, body:bytes = b'', peer_ip:str = None, http_version:str = '1.1'):
		self.method = method.upper()
		self.url = target
		self.headers:List[Tuple[str, str]] = headers if headers is not None else []
		self.body = body
		self.peer_ip = peer_ip
		self.http_version = http_version

		parts = urlsplit(target)
		self.path = parts.path or '/'
		self.query = parts.query

	@staticmethod
	def from_h11(event, body:bytes = b'', peer_ip:str = None):
		headers = []
		for name, value in event.headers:
			headers.append((name.decode('latin-1').lower(), value.decode('latin-1')))
		return HTTPRequest(
			event.method.decode('ascii'),
			event.target.decode('latin-1'),
			headers = headers,
			body = body,
			peer_ip = peer_ip,
			http_version = event.http_version.decode('ascii'),
		)

	def get_header(self, name:str, default:str = None) -> str:
		name = name.lower()
		for k, v in self.headers:
			if k == name:
				return v
		return default

	@property
	def user_agent(self):
		return self.get_header('user-agent')

	def query_items(self) -> List[Tuple[str, str]]:
		return parse_qsl(self.query, keep_blank_values=True)

	def mounted_path(self, prefix:str) -> str:
		"""
		Sub-path below a mount point, or None when the request is not under it.
		'/p' mounts '/p' and '/p/...' but not '/pq'. The empty prefix mounts everything.
		"""
		if prefix == '':
			return self.path
		if self.path == prefix:
			return '/'
		if self.path.startswith(prefix + '/'):
			return self.path[len(prefix):]
		return None

	def log_context(self) -> Dict[str, str]:
		return {
			'method' : self.method,
			'url' : self.url,
			'ip' : self.peer_ip,
			'userAgent' : self.user_agent,
		}

	def __str__(self):
		return '%s %s' % (self.method, self.url)


class ServerResponse:
	"""
	Outbound response. The body is either a bytes object or an async iterator of byte chunks (stream).
	Streams are always closed through aclose() once the response is done with, successfully or not.
	"""
	def __init__(self, status_code:int, headers:List[Tuple[str, str]] = None, body:bytes = b'', stream:AsyncIterator[bytes] = None):
		self.status_code = status_code
		self.headers:List[Tuple[str, str]] = headers if headers is not None else []
		self.body = body
		self.stream = stream

	@staticmethod
	def json(status_code:int, data, headers:List[Tuple[str, str]] = None):
		body = json.dumps(data).encode('utf-8')
		headers = list(headers) if headers is not None else []
		headers.append(('Content-Type', 'application/json; charset=utf-8'))
		return ServerResponse(status_code, headers, body)

	@staticmethod
	def html(status_code:int, text:str):
		return ServerResponse(status_code, [('Content-Type', 'text/html; charset=utf-8')], text.encode('utf-8', errors='surrogateescape'))

	@staticmethod
	def text(status_code:int, text:str):
		return ServerResponse(status_code, [('Content-Type', 'text/plain; charset=utf-8')], text.encode('utf-8'))

	def get_header(self, name:str, default:str = None) -> str:
		name = name.lower()
		for k, v in self.headers:
			if k.lower() == name:
				return v
		return default

	def has_header(self, name:str) -> bool:
		return self.get_header(name) is not None

	async def iter_body(self):
		if self.stream is None:
			if self.body:
				yield self.body
			return
		async for chunk in self.stream:
			yield chunk

	async def read(self) -> bytes:
		data = b''
		async for chunk in self.iter_body():
			data += chunk
		return data

	async def aclose(self):
		if self.stream is not None and hasattr(self.stream, 'aclose'):
			await self.stream.aclose()
