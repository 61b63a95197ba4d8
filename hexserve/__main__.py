import os
import signal
import locale
import asyncio

from hexserve import logger
from hexserve._version import __banner__
from hexserve.config import ServerConfig
from hexserve.logsetup import setup_logger
from hexserve.app import build_pipeline
from hexserve.common.target import UniTarget, UniProto
from hexserve.server.httpserver import HTTPServer


def ensure_serve_dir(serve_dir:str):
	if os.path.isdir(serve_dir):
		return
	logger.warning('Serve directory does not exist, creating it', extra={'context': {'serveDir' : serve_dir}})
	os.makedirs(serve_dir, exist_ok=True)

def setup_collation():
	"""Directory listings sort with the collation of the environment locale"""
	try:
		locale.setlocale(locale.LC_COLLATE, '')
	except locale.Error as e:
		logger.warning('Could not apply the environment collation locale: %s' % e)

async def amain(config:ServerConfig):
	setup_collation()
	ensure_serve_dir(config.serve_dir)

	server = HTTPServer(build_pipeline(config), UniTarget(config.host, config.port, UniProto.SERVER_TCP), max_body_size=config.max_body_size)
	stop_evt = asyncio.Event()
	stop_reason = []

	def stop(signame):
		stop_reason.append(signame)
		stop_evt.set()

	loop = asyncio.get_running_loop()
	for sig in (signal.SIGINT, signal.SIGTERM):
		try:
			loop.add_signal_handler(sig, stop, sig.name)
		except NotImplementedError:
			# no signal handlers on this platform, KeyboardInterrupt still ends the loop
			pass

	server_task = asyncio.create_task(server.serve())
	listening_task = asyncio.create_task(server.wait_listening())
	await asyncio.wait([server_task, listening_task], return_when=asyncio.FIRST_COMPLETED)
	if server_task.done():
		listening_task.cancel()
		# raises the bind error
		server_task.result()

	base = 'http://%s:%s' % (config.host, config.port)
	logger.info('Server started', extra={'context': {
		'address' : base,
		'fileBrowser' : base + config.url_prefix + '/',
		'serveDir' : config.serve_dir,
		'health' : base + '/health',
		'environment' : config.environment,
		'riotProxy' : (base + config.proxy_prefix) if config.proxy_enabled else 'disabled',
	}})
	if config.proxy_enabled is False:
		logger.warning('RIOT_API_KEY is not set, the Riot API proxy is disabled')

	waiter = asyncio.create_task(stop_evt.wait())
	await asyncio.wait([server_task, waiter], return_when=asyncio.FIRST_COMPLETED)
	if stop_evt.is_set():
		logger.info('Shutting down gracefully (%s)' % stop_reason[0])
	waiter.cancel()
	server_task.cancel()
	await server.terminate()
	logger.info('Server closed')

def main():
	import argparse

	parser = argparse.ArgumentParser(description='Directory browser and Riot API reverse proxy. Configured through environment variables or a .env file.')
	parser.add_argument('--env-file', help='Load environment variables from this file instead of ./.env')
	parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging, overrides LOG_LEVEL')
	args = parser.parse_args()

	print(__banner__)
	config = ServerConfig.from_env(dotenv_path=args.env_file)
	log_level = 'debug' if args.verbose is True else config.log_level
	setup_logger(log_level, config.log_dir, config.environment)
	logger.debug(str(config))

	try:
		asyncio.run(amain(config))
	except KeyboardInterrupt:
		logger.info('Shutting down gracefully (SIGINT)')


if __name__ == '__main__':
	main()
