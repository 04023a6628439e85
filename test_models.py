import unittest

from gptbot.llm.errors import LLMValidationError
from gptbot.llm.models import (
    ChatCompletionMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ImageRequest,
    ImageResponse,
    Model,
    ModelsResponse,
)


def chat_request(**kwargs):
    kwargs.setdefault("model", "openai/gpt-4o-mini")
    kwargs.setdefault("messages", [ChatCompletionMessage(role="user", content="Hello!")])
    return ChatCompletionRequest(**kwargs)


class TestChatCompletionRequest(unittest.TestCase):
    def test_valid_request(self):
        chat_request(temperature=0.0, max_tokens=0, top_p=1.0).validate()

    def test_validation_errors(self):
        cases = {
            "model is required": chat_request(model=""),
            "at least one message": chat_request(messages=[]),
            "message 0: role is required": chat_request(messages=[ChatCompletionMessage(role="", content="x")]),
            "message 1: content is required": chat_request(messages=[
                ChatCompletionMessage(role="system", content="be nice"),
                ChatCompletionMessage(role="user", content=""),
            ]),
            "temperature must be non-negative": chat_request(temperature=-0.1),
            "max_tokens must be non-negative": chat_request(max_tokens=-1),
            "top_p must be non-negative": chat_request(top_p=-1.0),
        }
        for fragment, request in cases.items():
            with self.subTest(fragment=fragment):
                with self.assertRaises(LLMValidationError) as ctx:
                    request.validate()
                self.assertIn(fragment, str(ctx.exception))
                self.assertTrue(str(ctx.exception).startswith("invalid request: "))

    def test_to_dict_omits_unset_fields(self):
        data = chat_request().to_dict()
        self.assertEqual(data, {
            "model": "openai/gpt-4o-mini",
            "messages": [{"role": "user", "content": "Hello!"}],
            "stream": False,
        })

    def test_to_dict_keeps_explicit_zero(self):
        data = chat_request(temperature=0.0, stop=["\n"], user="42").to_dict()
        self.assertEqual(data["temperature"], 0.0)
        self.assertEqual(data["stop"], ["\n"])
        self.assertEqual(data["user"], "42")
        self.assertNotIn("max_tokens", data)


class TestChatCompletionResponse(unittest.TestCase):
    BODY = {
        "id": "gen-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "openai/gpt-4o-mini",
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": "Hi there"},
            "finish_reason": "stop",
        }],
        "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5, "total_cost": 0.0001},
    }

    def test_from_dict(self):
        resp = ChatCompletionResponse.from_dict(self.BODY)
        self.assertEqual(resp.id, "gen-1")
        self.assertEqual(resp.created, 1700000000)
        self.assertEqual(resp.content, "Hi there")
        self.assertEqual(resp.choices[0].finish_reason, "stop")
        self.assertIsNone(resp.choices[0].logprobs)
        self.assertEqual(resp.usage.total_tokens, 5)
        self.assertEqual(resp.usage.total_cost, 0.0001)
        self.assertIsNone(resp.usage.prompt_cost)

    def test_missing_fields(self):
        resp = ChatCompletionResponse.from_dict({})
        self.assertEqual(resp.choices, [])
        self.assertEqual(resp.content, "")
        self.assertEqual(resp.usage.total_tokens, 0)

    def test_logprobs(self):
        body = dict(self.BODY)
        body["choices"] = [dict(self.BODY["choices"][0], logprobs={"tokens": ["Hi"], "token_logprobs": [-0.1]})]
        choice = ChatCompletionResponse.from_dict(body).choices[0]
        self.assertEqual(choice.logprobs.tokens, ["Hi"])
        self.assertEqual(choice.logprobs.text_offset, [])

    def test_wrong_shape(self):
        with self.assertRaises(TypeError):
            ChatCompletionResponse.from_dict(["not", "an", "object"])
        with self.assertRaises(TypeError):
            ChatCompletionResponse.from_dict({"choices": "nope"})


class TestImagePayloads(unittest.TestCase):
    def test_validate(self):
        ImageRequest(prompt="a cat", model="openai/dall-e-3").validate()
        for request, fragment in (
            (ImageRequest(prompt="", model="m"), "prompt is required"),
            (ImageRequest(prompt="p", model=""), "model is required"),
            (ImageRequest(prompt="p", model="m", n=-1), "n must be non-negative"),
        ):
            with self.subTest(fragment=fragment):
                with self.assertRaises(LLMValidationError) as ctx:
                    request.validate()
                self.assertIn(fragment, str(ctx.exception))

    def test_to_dict(self):
        request = ImageRequest(prompt="a cat", model="openai/dall-e-3", n=2, size="512x512", response_format="url")
        self.assertEqual(request.to_dict(), {
            "prompt": "a cat",
            "model": "openai/dall-e-3",
            "n": 2,
            "size": "512x512",
            "response_format": "url",
        })

    def test_response_from_dict(self):
        resp = ImageResponse.from_dict({
            "created": 1,
            "data": [{"url": "https://img/1.png", "revised_prompt": "a cute cat"}, {"b64_json": "aGk="}],
        })
        self.assertEqual(len(resp.data), 2)
        self.assertEqual(resp.data[0].url, "https://img/1.png")
        self.assertIsNone(resp.data[1].url)
        self.assertEqual(resp.data[1].b64_json, "aGk=")


class TestModelPayloads(unittest.TestCase):
    def test_models_response(self):
        resp = ModelsResponse.from_dict({
            "object": "list",
            "data": [
                {"id": "openai/gpt-4o-mini", "name": "GPT-4o mini", "context_length": 128000},
                {"id": "anthropic/claude-3-haiku", "permission": [{"id": "perm", "allow_sampling": True}]},
            ],
        })
        self.assertEqual(resp.ids(), ["openai/gpt-4o-mini", "anthropic/claude-3-haiku"])
        self.assertEqual(resp.data[0].context_length, 128000)
        self.assertTrue(resp.data[1].permission[0].allow_sampling)
        self.assertIsNone(resp.data[1].context_length)

    def test_single_model_wrapped_in_data(self):
        model = Model.from_dict({"data": {"id": "openai/gpt-4o", "description": "Omni"}})
        self.assertEqual(model.id, "openai/gpt-4o")
        self.assertEqual(model.description, "Omni")


if __name__ == "__main__":
    unittest.main()
