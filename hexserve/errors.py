from typing import List, Dict


class HexServeError(Exception):
	"""Base for every error that maps onto a fixed HTTP answer"""
	status_code = 500
	error = 'Internal server error'

	def __init__(self, message:str = None):
		if message is None:
			message = self.error
		self.message = message
		super().__init__(self.message)

	def to_dict(self) -> Dict[str, object]:
		return {
			'error' : self.error,
			'message' : self.message,
		}


class TraversalRejected(HexServeError):
	status_code = 403
	error = 'Forbidden'

	def __init__(self, request_path:str, message="Access denied"):
		self.request_path = request_path
		super().__init__(message)


class NotFound(HexServeError):
	status_code = 404
	error = 'File not found'

	def __init__(self, path:str, message="File not found"):
		self.path = path
		super().__init__(message)

	def to_dict(self):
		return {
			'error' : self.error,
			'path' : self.path,
		}


class ValidationError(HexServeError):
	status_code = 400
	error = 'Validation Error'

	def __init__(self, details:List[Dict[str, str]], message="The request contains invalid parameters"):
		self.details = details
		super().__init__(message)

	def to_dict(self):
		res = super().to_dict()
		res['details'] = self.details
		return res


class ConfigurationError(HexServeError):
	status_code = 500
	error = 'Configuration Error'


class UpstreamTimeout(HexServeError):
	status_code = 504
	error = 'Gateway Timeout'

	def __init__(self, message="Riot API request timed out"):
		super().__init__(message)


class UpstreamConnectionFailure(HexServeError):
	status_code = 502
	error = 'Bad Gateway'

	def __init__(self, innerexception:Exception = None, message="Failed to connect to Riot API"):
		self.innerexception = innerexception
		super().__init__(message)


class PayloadTooLarge(HexServeError):
	status_code = 413
	error = 'Payload Too Large'

	def __init__(self, limit:int, message=None):
		self.limit = limit
		if message is None:
			message = 'Request body exceeds %s bytes' % limit
		super().__init__(message)
