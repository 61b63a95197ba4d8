import time
import asyncio
import datetime
import email.utils

import h11

from hexserve import logger
from hexserve._version import __version__
from hexserve.common.target import UniTarget
from hexserve.common.connection import UniConnection
from hexserve.common.server import UniServer
from hexserve.errors import PayloadTooLarge
from hexserve.server.messages import HTTPRequest, ServerResponse


class HTTPConnectionWrapper:
	def __init__(self, client_id, stream:UniConnection):
		self.client_id = client_id
		self.stream = stream
		self.conn = h11.Connection(h11.SERVER)
		# Our Server: header
		self.ident = " ".join(
			[f"hexserve/{__version__}", h11.PRODUCT_ID]
		).encode("ascii")

	async def send(self, event):
		# ConnectionClosed is never sent from here, closing goes through shutdown_and_clean_up
		assert type(event) is not h11.ConnectionClosed
		data = self.conn.send(event)
		try:
			await self.stream.write(data)
		except BaseException:
			# whatever happened to the socket, this connection can't be used anymore
			self.conn.send_failed()
			raise

	async def _read_from_peer(self):
		if self.conn.they_are_waiting_for_100_continue:
			logger.debug('[%s] Sending 100 Continue' % self.client_id)
			go_ahead = h11.InformationalResponse(
				status_code=100, headers=self.basic_headers()
			)
			await self.send(go_ahead)
		try:
			data = await self.stream.read_one()
		except OSError as exc:
			logger.debug('[%s] Error reading from peer: %s' % (self.client_id, exc))
			# They've stopped listening. Not much we can do about it here.
			data = b""
		self.conn.receive_data(data)

	async def next_event(self):
		while True:
			event = self.conn.next_event()
			if event is h11.NEED_DATA:
				await self._read_from_peer()
				continue
			return event

	async def shutdown_and_clean_up(self):
		await self.stream.close()

	async def _discard_input(self):
		while True:
			data = await self.stream.read_one()
			if data == b'':
				return

	async def linger(self, timeout:float = 2):
		"""Reads and drops what the client is still sending, so closing right after an early response doesn't reset it"""
		try:
			await asyncio.wait_for(self._discard_input(), timeout=timeout)
		except (asyncio.TimeoutError, OSError) as e:
			logger.debug('[%s] Stopped lingering: %r' % (self.client_id, e))

	def basic_headers(self):
		# HTTP requires these headers in all responses
		return [
			("Date", self.format_date_time().encode("ascii")),
			("Server", self.ident),
		]

	def format_date_time(self, dt=None):
		"""Generate a RFC 7231 / RFC 9110 IMF-fixdate string"""
		if dt is None:
			dt = datetime.datetime.now(datetime.timezone.utc)
		return email.utils.format_datetime(dt, usegmt=True)


class HTTPServer:
	"""
	Accepts connections on the target and hands every complete request to handler.dispatch(request),
	which must return a ServerResponse.
	"""
	def __init__(self, handler, target:UniTarget, max_body_size:int = 1024*1024):
		self.handler = handler
		self.target = target
		self.max_body_size = max_body_size
		self.server = UniServer(self.target)
		self.clients = []
		self.id_counter = 0

	@property
	def bound_port(self):
		return self.server.bound_port

	async def wait_listening(self):
		await self.server.listening_evt.wait()

	async def terminate(self):
		await self.server.close()
		for wrapper in list(self.clients):
			await wrapper.shutdown_and_clean_up()
		self.clients = []
		await self.server.wait_closed()

	async def read_request(self, wrapper:HTTPConnectionWrapper, event:h11.Request) -> HTTPRequest:
		content_length = None
		for name, value in event.headers:
			if name == b'content-length':
				content_length = int(value)
		if content_length is not None and content_length > self.max_body_size:
			raise PayloadTooLarge(self.max_body_size)

		body = b''
		while True:
			part = await wrapper.next_event()
			if type(part) is h11.Data:
				body += part.data
				if len(body) > self.max_body_size:
					raise PayloadTooLarge(self.max_body_size)
			elif type(part) is h11.EndOfMessage:
				break
			else:
				raise ConnectionError('Client went away while sending the request body')

		return HTTPRequest.from_h11(event, body, wrapper.stream.get_peer_ip())

	async def send_response(self, wrapper:HTTPConnectionWrapper, request:HTTPRequest, response:ServerResponse):
		headers = list(response.headers)
		for name, value in wrapper.basic_headers():
			if not response.has_header(name):
				headers.append((name, value))
		if response.stream is None and not response.has_header('Content-Length'):
			headers.append(('Content-Length', str(len(response.body))))

		body_allowed = request.method != 'HEAD' and response.status_code not in (204, 304)
		try:
			await wrapper.send(h11.Response(status_code=response.status_code, headers=headers))
			if body_allowed is True:
				async for chunk in response.iter_body():
					if len(chunk) > 0:
						await wrapper.send(h11.Data(data=chunk))
			await wrapper.send(h11.EndOfMessage())
		finally:
			await response.aclose()

	async def _process_request(self, wrapper:HTTPConnectionWrapper, event:h11.Request):
		start = time.monotonic()
		try:
			request = await self.read_request(wrapper, event)
		except PayloadTooLarge as e:
			request = HTTPRequest.from_h11(event, b'', wrapper.stream.get_peer_ip())
			response = ServerResponse.json(e.status_code, e.to_dict(), headers=[('Connection', 'close')])
		else:
			response = await self.handler.dispatch(request)

		try:
			await self.send_response(wrapper, request, response)
		except Exception as e:
			logger.warning('Response aborted after it was started', extra={'context': {
				'method' : request.method,
				'url' : request.url,
				'statusCode' : response.status_code,
				'reason' : repr(e),
			}})
			raise

		logger.info('HTTP Request', extra={'context': {
			'type' : 'http_request',
			'method' : request.method,
			'url' : request.url,
			'statusCode' : response.status_code,
			'responseTime' : int((time.monotonic() - start) * 1000),
		}})

		if wrapper.conn.their_state is h11.SEND_BODY:
			# answered before the request body was read, the connection is closed after this
			await wrapper.linger()

	async def __handle_connection(self, connection:UniConnection):
		client_id = self.id_counter
		self.id_counter += 1
		wrapper = HTTPConnectionWrapper(client_id, connection)
		self.clients.append(wrapper)
		logger.debug('[%s] New client connected from %s' % (client_id, connection.get_peer_ip()))
		try:
			while True:
				if wrapper.conn.states == {h11.CLIENT: h11.CLOSED, h11.SERVER: h11.CLOSED}:
					break

				if wrapper.conn.states[h11.CLIENT] == h11.MUST_CLOSE:
					break

				if wrapper.conn.states[h11.SERVER] in (h11.MUST_CLOSE, h11.CLOSED):
					break

				if wrapper.conn.states == {h11.CLIENT: h11.DONE, h11.SERVER: h11.DONE}:
					wrapper.conn.start_next_cycle()
					continue

				if not (wrapper.conn.states == {h11.CLIENT: h11.IDLE, h11.SERVER: h11.IDLE}):
					logger.debug('[%s] Connection state not idle: %s' % (client_id, wrapper.conn.states))
					break

				event = await wrapper.next_event()
				if type(event) is h11.Request:
					await self._process_request(wrapper, event)
					continue
				if type(event) is h11.ConnectionClosed:
					break
				logger.debug('[%s] Unexpected event type %s' % (client_id, type(event)))
				break

		except h11.RemoteProtocolError as e:
			logger.debug('[%s] Protocol error from client: %s' % (client_id, e))
			if wrapper.conn.our_state in (h11.IDLE, h11.SEND_RESPONSE):
				try:
					res = h11.Response(status_code=e.error_status_hint, headers=wrapper.basic_headers() + [('Content-Length', '0'), ('Connection', 'close')])
					await wrapper.send(res)
					await wrapper.send(h11.EndOfMessage())
				except Exception as send_exc:
					logger.debug('[%s] Could not send protocol error response: %s' % (client_id, send_exc))
		except Exception as e:
			logger.debug('[%s] Connection terminated: %r' % (client_id, e))
		finally:
			if wrapper in self.clients:
				self.clients.remove(wrapper)
			await wrapper.shutdown_and_clean_up()

	async def serve(self):
		tasks = set()
		async for connection in self.server.serve():
			task = asyncio.create_task(self.__handle_connection(connection))
			tasks.add(task)
			task.add_done_callback(tasks.discard)
