from staticserver import DEFAULT_ERROR_HANDLERS, HTTPRequest
from staticserver.handlers import errorHandlers, internalError, notFound


def test_defaults():
	assert errorHandlers() is DEFAULT_ERROR_HANDLERS
	assert errorHandlers({}) is DEFAULT_ERROR_HANDLERS
	req = HTTPRequest.Create("GET", "/")
	res = DEFAULT_ERROR_HANDLERS[404](req)
	assert (res.status, res.payload) == (404, b"Not Found")
	res = DEFAULT_ERROR_HANDLERS[500](req)
	assert (res.status, res.payload) == (500, b"Internal Server Error")


def test_merge():
	def teapot(request: HTTPRequest):
		return request.respondText("teapot", status=418)

	handlers = errorHandlers({404: teapot, 418: teapot})
	assert handlers[404] is teapot
	assert handlers[500] is internalError
	# Only 404 and 500 can be customized
	assert sorted(handlers) == [404, 500]
	handlers = errorHandlers({500: teapot})
	assert handlers[404] is notFound
	assert handlers[500] is teapot


# EOF
