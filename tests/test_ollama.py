"""
Tests for the Ollama provider, against a mocked HTTP transport.
"""
import json
import unittest

import httpx

from nexi.config import Config
from nexi.llm.ollama import OllamaProvider
from nexi.llm.provider import GenerateOptions, ProviderError
from nexi.state import BehavioralMode

HOST = "http://ollama.test:11434"


class OllamaTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.requests = []
        self.handler = None

    def provider(self, handler, **kwargs):
        def record(request):
            self.requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(record))
        return OllamaProvider(host=HOST, client=client, **kwargs)

    def body(self, index=0):
        return json.loads(self.requests[index].content)


class TestGenerate(OllamaTestCase):

    async def test_non_streaming(self):
        provider = self.provider(lambda r: httpx.Response(200, json={"response": "Hey you.", "done": True}))

        text = await provider.generate("prompt", GenerateOptions(mode=BehavioralMode.CHAT, max_tokens=220,
                                                                  temperature=0.8))

        self.assertEqual(text, "Hey you.")
        self.assertEqual(self.requests[0].url, httpx.URL(f"{HOST}/api/generate"))
        self.assertEqual(self.body(), {
            "model": "llama3.1:8b",
            "prompt": "prompt",
            "stream": False,
            "options": {"num_predict": 220, "temperature": 0.8},
        })
        await provider.aclose()

    async def test_streaming_calls_back_per_token(self):
        lines = [
            {"response": "Hel", "done": False},
            {"response": "lo", "done": False},
            {"response": "", "done": True},
        ]
        payload = "\n".join(json.dumps(line) for line in lines[:2]) + "\nnot json\n\n" + json.dumps(lines[2])
        provider = self.provider(lambda r: httpx.Response(200, content=payload.encode()))
        tokens = []

        text = await provider.generate("prompt", GenerateOptions(stream=True, on_token=tokens.append))

        self.assertEqual(text, "Hello")
        self.assertEqual(tokens, ["Hel", "lo"])
        self.assertTrue(self.body()["stream"])
        await provider.aclose()

    async def test_mode_overrides(self):
        provider = self.provider(lambda r: httpx.Response(200, json={"response": "ok"}),
                                 model_overrides={"think": "qwen2.5:14b", "react": ""})

        await provider.generate("p", GenerateOptions(mode=BehavioralMode.THINK))

        self.assertEqual(self.body()["model"], "qwen2.5:14b")
        self.assertEqual(provider.get_model_for_mode(BehavioralMode.REACT), "llama3.1:8b")
        self.assertNotIn("options", self.body())
        await provider.aclose()

    async def test_http_error_raises_provider_error(self):
        provider = self.provider(lambda r: httpx.Response(500, text="model not found"))

        with self.assertRaises(ProviderError):
            await provider.generate("p")
        with self.assertRaises(ProviderError):
            await provider.generate("p", GenerateOptions(stream=True))
        await provider.aclose()

    async def test_connection_error_raises_provider_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = self.provider(refuse)

        with self.assertRaises(ProviderError):
            await provider.generate("p")
        await provider.aclose()


class TestEmbedAndAvailability(OllamaTestCase):

    async def test_embed(self):
        provider = self.provider(lambda r: httpx.Response(200, json={"embeddings": [[0.1, 0.2, 0.3]]}),
                                 embedding_model="mxbai-embed-large")

        vector = await provider.embed("hello")

        self.assertEqual(vector, [0.1, 0.2, 0.3])
        self.assertEqual(self.requests[0].url.path, "/api/embed")
        self.assertEqual(self.body(), {"model": "mxbai-embed-large", "input": "hello"})
        await provider.aclose()

    async def test_embed_empty_response(self):
        provider = self.provider(lambda r: httpx.Response(200, json={"embeddings": []}))

        with self.assertRaises(ProviderError):
            await provider.embed("hello")
        await provider.aclose()

    async def test_is_available(self):
        up = self.provider(lambda r: httpx.Response(200, json={"models": []}))
        self.assertTrue(await up.is_available())
        self.assertEqual(self.requests[0].url.path, "/api/tags")
        await up.aclose()

        down = self.provider(lambda r: httpx.Response(503))
        self.assertFalse(await down.is_available())
        await down.aclose()

    async def test_unreachable_is_unavailable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = self.provider(refuse)
        self.assertFalse(await provider.is_available())
        await provider.aclose()


class TestFromConfig(unittest.TestCase):

    def test_from_config(self):
        config = Config(overrides={"llm": {
            "host": "http://gpu-box:11434/",
            "default_model": "mistral",
            "models": {"react": "phi3"},
            "embedding_model": "all-minilm",
            "timeout": 5,
        }})

        provider = OllamaProvider.from_config(config)

        self.assertEqual(provider.host, "http://gpu-box:11434")
        self.assertEqual(provider.get_model_for_mode(BehavioralMode.REACT), "phi3")
        self.assertEqual(provider.get_model_for_mode(BehavioralMode.CHAT), "mistral")
        self.assertEqual(provider.embedding_model, "all-minilm")
        self.assertEqual(provider.timeout, 5)


if __name__ == '__main__':
    unittest.main()
