from typing import List

from hexserve import logger
from hexserve.errors import HexServeError, NotFound
from hexserve.server.messages import HTTPRequest, ServerResponse


class RequestHandler:
	"""
	One stage of the pipeline.
	handle() returns a ServerResponse to finish the request, or None to pass it to the next stage.
	"""
	async def handle(self, request:HTTPRequest) -> ServerResponse:
		raise NotImplementedError()


class NotFoundHandler(RequestHandler):
	async def handle(self, request:HTTPRequest) -> ServerResponse:
		raise NotFound(request.path)


class RequestPipeline:
	def __init__(self, handlers:List[RequestHandler]):
		self.handlers = list(handlers)
		self.fallback = NotFoundHandler()

	async def dispatch(self, request:HTTPRequest) -> ServerResponse:
		try:
			for handler in self.handlers:
				response = await handler.handle(request)
				if response is not None:
					return response
			return await self.fallback.handle(request)

		except HexServeError as e:
			if e.status_code >= 500:
				logger.error('Request failed: %s' % e, extra={'context': request.log_context()})
			return ServerResponse.json(e.status_code, e.to_dict())

		except Exception as e:
			ctx = request.log_context()
			ctx['type'] = 'error'
			ctx['errorName'] = type(e).__name__
			ctx['errorMessage'] = str(e)
			logger.exception('Error occurred', extra={'context': ctx})
			return ServerResponse.json(500, {
				'error' : 'Internal server error',
				'message' : 'An unexpected error occurred',
			})
