import os
import gzip
import json
import shutil
import logging
import datetime
from logging.handlers import TimedRotatingFileHandler

from hexserve import logger

LEVELS = {
	'error' : logging.ERROR,
	'warn' : logging.WARNING,
	'warning' : logging.WARNING,
	'info' : logging.INFO,
	'http' : logging.INFO,
	'verbose' : logging.DEBUG,
	'debug' : logging.DEBUG,
	'silly' : logging.DEBUG,
}

# attributes every LogRecord has, anything else came in through `extra`
_RECORD_ATTRS = set(logging.LogRecord('', 0, '', 0, '', (), None).__dict__.keys()) | {'message', 'asctime'}


class ServiceFilter(logging.Filter):
	"""Stamps every record with the service name and the deployment environment"""
	def __init__(self, service:str, environment:str):
		super().__init__()
		self.service = service
		self.environment = environment

	def filter(self, record):
		record.service = self.service
		record.environment = self.environment
		return True


def record_context(record:logging.LogRecord):
	context = getattr(record, 'context', None)
	if context is None:
		return {}
	return dict(context)


class ConsoleFormatter(logging.Formatter):
	def __init__(self):
		super().__init__('%(asctime)s [%(levelname)s]: %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

	def format(self, record):
		msg = super().format(record)
		context = record_context(record)
		if len(context) > 0:
			msg += ' ' + json.dumps(context, default=str)
		return msg


class JSONFormatter(logging.Formatter):
	"""One JSON document per line, context keys nested under "metadata" """
	def format(self, record):
		entry = {
			'timestamp' : datetime.datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S'),
			'level' : record.levelname.lower(),
			'message' : record.getMessage(),
			'logger' : record.name,
		}
		metadata = record_context(record)
		for k in record.__dict__:
			if k in _RECORD_ATTRS or k == 'context':
				continue
			metadata[k] = record.__dict__[k]
		if record.exc_info:
			metadata['stack'] = self.formatException(record.exc_info)
		entry['metadata'] = metadata
		return json.dumps(entry, default=str)


class SizedTimedRotatingFileHandler(TimedRotatingFileHandler):
	"""Rolls over on the time schedule and additionally whenever the file grows past max_bytes"""
	def __init__(self, filename, max_bytes:int = 20*1024*1024, **kwargs):
		super().__init__(filename, **kwargs)
		self.max_bytes = max_bytes

	def shouldRollover(self, record):
		if super().shouldRollover(record):
			return True
		if self.max_bytes <= 0 or self.stream is None:
			return False
		self.stream.seek(0, 2)
		return self.stream.tell() + len(self.format(record)) + 1 >= self.max_bytes

	def rotation_filename(self, default_name):
		name = super().rotation_filename(default_name) + '.gz'
		if not os.path.exists(name):
			return name
		# size based rollover within the same time window
		i = 1
		while os.path.exists('%s.%d.gz' % (name[:-3], i)):
			i += 1
		return '%s.%d.gz' % (name[:-3], i)

	def rotate(self, source, dest):
		if not os.path.exists(source):
			return
		with open(source, 'rb') as f_in:
			with gzip.open(dest, 'wb') as f_out:
				shutil.copyfileobj(f_in, f_out)
		os.remove(source)

	def getFilesToDelete(self):
		# compressed names do not match the stock suffix pattern
		dirname, basename = os.path.split(self.baseFilename)
		prefix = basename + '.'
		candidates = []
		for filename in os.listdir(dirname):
			if filename.startswith(prefix) and filename.endswith('.gz'):
				candidates.append(os.path.join(dirname, filename))
		if len(candidates) <= self.backupCount:
			return []
		candidates.sort(key=os.path.getmtime)
		return candidates[:len(candidates) - self.backupCount]


def file_handler(path:str, level:int, log_filter:logging.Filter):
	h = SizedTimedRotatingFileHandler(
		path,
		max_bytes = 20*1024*1024,
		when = 'W0',
		backupCount = 2,
		encoding = 'utf-8',
		delay = True,
	)
	h.setLevel(level)
	h.setFormatter(JSONFormatter())
	h.addFilter(log_filter)
	return h

def setup_logger(level:str = 'info', log_dir:str = None, environment:str = 'development', service:str = 'hexserve'):
	"""
	Replaces the handlers of the package logger.
	Console output is always enabled, the rotating JSON files only when log_dir is given.
	"""
	log_filter = ServiceFilter(service, environment)
	for h in list(logger.handlers):
		logger.removeHandler(h)
		h.close()

	console = logging.StreamHandler()
	console.setLevel(logging.DEBUG)
	console.setFormatter(ConsoleFormatter())
	console.addFilter(log_filter)
	logger.addHandler(console)

	if log_dir is not None:
		os.makedirs(log_dir, exist_ok=True)
		logger.addHandler(file_handler(os.path.join(log_dir, '%s.log' % service), logging.INFO, log_filter))
		logger.addHandler(file_handler(os.path.join(log_dir, '%s-error.log' % service), logging.ERROR, log_filter))

	logger.setLevel(LEVELS.get(level.lower(), logging.INFO))
	logger.propagate = False
	return logger
