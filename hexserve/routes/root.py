from hexserve.server.pipeline import RequestHandler
from hexserve.server.messages import HTTPRequest, ServerResponse
from hexserve.fileserver.listing import DirectoryEntry, render_index


class RootHandler(RequestHandler):
	"""Answers GET / with an index holding a single link to the browse prefix"""
	def __init__(self, url_prefix:str):
		self.url_prefix = url_prefix

	async def handle(self, request:HTTPRequest) -> ServerResponse:
		if request.method not in ('GET', 'HEAD') or request.path != '/':
			return None
		entry = DirectoryEntry(self.url_prefix.lstrip('/'), True, link_path=self.url_prefix + '/')
		return ServerResponse.html(200, render_index('/', [entry], None))
