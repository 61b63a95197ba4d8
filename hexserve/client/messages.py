import h11
from typing import List, Tuple


class HTTPResponse:
	def __init__(self):
		self.status:int = None
		self.http_version:str = None
		self.reason:str = None
		self.raw_headers:List[Tuple[str, str]] = []
		self.data_iter = None

	@staticmethod
	def from_h11_header(rh:h11.Response, data_iter):
		resp = HTTPResponse()
		resp.status = rh.status_code
		resp.http_version = rh.http_version.decode()
		resp.reason = rh.reason.decode('latin-1')
		resp.raw_headers = []
		for name, value in rh.headers:
			resp.raw_headers.append((name.decode('latin-1'), value.decode('latin-1')))
		resp.data_iter = data_iter
		return resp

	async def stream_data(self):
		async for event in self.data_iter():
			if type(event) is h11.Data:
				yield event.data
			if type(event) is h11.EndOfMessage:
				break

	async def read(self):
		data = b''
		async for chunk in self.stream_data():
			data += chunk
		return data
