import h11
import asyncio
from typing import List, Tuple

from hexserve import logger
from hexserve.common.connection import UniConnection
from hexserve.client.messages import HTTPResponse
from hexserve.client.target import HTTPTarget


class HTTPClientTransport:
	"""A single upstream HTTP/1.1 connection driven by h11 in client role"""
	def __init__(self, target:HTTPTarget, request_connection_type='close'):
		self.target = target
		self.connection_closed_evt = asyncio.Event()
		self.connection:UniConnection = None
		self.httpconn:h11.Connection = None
		self.request_connection_type = request_connection_type

	@property
	def is_connected(self):
		return self.connection is not None and self.connection_closed_evt.is_set() is False

	async def __next_event(self):
		while self.connection_closed_evt.is_set() is False:
			event = self.httpconn.next_event()
			if event is h11.NEED_DATA:
				data = await self.connection.read_one()
				self.httpconn.receive_data(data)
				continue
			if type(event) is h11.ConnectionClosed:
				await self.disconnect()
				break
			yield event

	async def __send(self, event):
		data = self.httpconn.send(event)
		if data is None or data == b'':
			return
		await self.connection.write(data)

	async def connect(self):
		self.httpconn = h11.Connection(our_role=h11.CLIENT)
		self.connection = await UniConnection.open(self.target)
		logger.debug('Upstream connection open to %s' % self.target.get_host())

	async def disconnect(self):
		if self.connection_closed_evt.is_set() is True:
			return
		self.connection_closed_evt.set()
		if self.connection is not None:
			await self.connection.close()
			logger.debug('Upstream connection to %s closed' % self.target.get_host())

	def __correct_headers(self, headers:List[Tuple[str,str]], data:bytes=None, need_length:bool=False):
		headers = list(headers)
		has_host = False
		has_connection = False
		has_length = False
		for entry in headers:
			if entry[0].lower() == 'host':
				has_host = True
			elif entry[0].lower() == 'connection':
				has_connection = True
			elif entry[0].lower() == 'content-length':
				has_length = True
		if has_host is False:
			headers.append(('Host', self.target.get_host_header()))
		if has_connection is False:
			headers.append(('Connection', self.request_connection_type))
		if need_length is True and has_length is False:
			if data is None:
				data = b''
			headers.append(('Content-Length', str(len(data))))
		return headers

	async def __read_header(self):
		async for event in self.__next_event():
			if type(event) is h11.InformationalResponse:
				continue
			if type(event) is h11.Response:
				return HTTPResponse.from_h11_header(event, self.__next_event)
			raise ConnectionError('Unexpected event before response headers: %s' % type(event).__name__)
		raise ConnectionError('Server terminated the connection before sending a response!')

	async def request(self, req_type:str, target:str = '/', headers:List[Tuple[str,str]] = [], data:bytes=None, need_length:bool=False) -> HTTPResponse:
		if self.is_connected is False:
			raise ConnectionError('Transport is not connected')
		# h11 frames a request body only when its length is declared
		need_length = need_length or (data is not None and len(data) > 0)
		request_header = self.__correct_headers(headers, data, need_length)
		request_event = h11.Request(
			method=req_type,
			target=target,
			headers=request_header,
		)

		await self.__send(request_event)
		if data is not None and len(data) > 0:
			await self.__send(h11.Data(data=data))
		await self.__send(h11.EndOfMessage())

		return await self.__read_header()
