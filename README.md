# fake-ollama

`fake-ollama` is a small local server that looks like Ollama to its clients. It sends chat
requests on to any OpenAI-compatible chat completions endpoint, so tools that only speak the
Ollama API can use a hosted model.

## What it serves

The `fake-ollama` command listens on `127.0.0.1:11434`, which is Ollama's default address. It
answers these routes:

| Method | Path                   | Behaviour                                                        |
|--------|------------------------|------------------------------------------------------------------|
| GET    | `/`                    | Returns `Ollama is running`                                      |
| POST   | `/api/chat`            | Forwards the messages upstream and returns an Ollama chat reply  |
| POST   | `/v1/chat/completions` | Works the same way as `/api/chat`                                |
| POST   | `/api/generate`        | Sends the prompt upstream as a single user message               |
| GET    | `/api/tags`            | Lists the models you enabled on the command line                 |

Request bodies must be JSON and must be sent with `Content-Type: application/json`.

- Chat requests need `model`, `messages` (each with `role` and `content`) and `stream`. A
  `temperature` field is optional.
- Generate requests need `model`, `prompt` and `stream`.
- Each request's headers and body are printed to standard output.
- A wrong content type is answered with 415. A body that is not valid JSON gets 400. Missing
  fields or fields of the wrong type get 422.

Every chat goes upstream to `<url>/v1/chat/completions`. The API key is sent as a bearer token,
and the temperature is always set to 0.7.

- When `stream` is true, each upstream `data:` line that holds a non-empty delta becomes one
  Ollama NDJSON line, sent as `application/x-ndjson`. `data: [DONE]` becomes a final line with
  `"done": true`.
- When `stream` is false, one Ollama response is returned. Its token counts come from the
  upstream `usage` field, and its durations are made up from those counts.
- When the upstream server answers with an error status, that status and body are passed back
  unchanged.
- When the upstream server cannot be reached, the reply is a 500 with
  `Error forwarding request: ...`.

Each entry in `/api/tags` is built from the model name alone. The family is the leading run of
letters and digits. The digest is the SHA-256 of the name. Size, format and quantization are
fixed values that depend on whether the name contains `llama` or `mistral`.

## Installation

```
pip install .
```

## Usage

```
fake-ollama --url https://llm.example.com --api-key placeholder --enabled-models llama3,mistral
```

Options:

- `-u`, `--url`: base URL of the remote server. This option is required.
- `-a`, `--api-key`: API key for the remote server. This option is required.
- `--enabled-models`: the models that `/api/tags` reports. Separate names with commas, give
  several values, or repeat the option.
- `-V`, `--version`: print the version and exit.

At startup the server prints its configuration and the list of endpoints.

Any Ollama client can then use it, for example:

```
curl http://127.0.0.1:11434/api/chat -H 'Content-Type: application/json' -d '{"model": "llama3", "messages": [{"role": "user", "content": "Hello"}], "stream": false}'
```

## Using it from Python

```python
from fake_ollama.server import Config, run

config = Config(url="https://llm.example.com", api_key="placeholder", enabled_models=["llama3"])
run(config, "127.0.0.1", 11434)
```

- `fake_ollama.server.create_app(config)` returns the `aiohttp` application without starting
  it.
- `fake_ollama.cli.parse_args(argv)` builds a `Config` from command line arguments.
- `fake_ollama.cli.banner(config, host, port)` returns the startup text.

`fake_ollama.protocol` holds the conversion helpers, which need no network:

- `translate_stream_line`, `translate_completion` and `upstream_request` for chat traffic.
- `tags_response` and `model_entry` for the model listing.
- The `Message` and `ChatResponse` data classes.

## What it does not do

- It runs no models itself, and it has no other Ollama endpoints such as pulling, deleting or
  showing models. The model listing is synthetic.
- The command line has no option for the listening address. To use another host or port, call
  `run(config, host, port)` from Python.
- Streaming replies carry no real timing or token counts.

## Running the tests

```
pip install ".[test]"
pytest
```