import pytest

from advisor_chat.domain.chat_models import ChatOptions, text_response
from advisor_chat.domain.models import assistant_message
from advisor_chat.ports.advisor import Advisor
from advisor_chat.use_cases.chat_client import ChatClient


class SpyAdvisor(Advisor):
    """Запоминает, что видел на каждой ноге, и оставляет свои метки в контексте."""

    def __init__(self, name: str = "spy", log=None):
        self.name = name
        self.log = log if log is not None else []
        self.request = None
        self.request_context = None
        self.response_context = None
        self.stream_context = None

    def advise_request(self, request, context):
        self.log.append(f"req:{self.name}")
        self.request = request
        self.request_context = dict(context)
        context["adviseRequest"] = "adviseRequest"
        return request

    def advise_response(self, response, context):
        self.log.append(f"resp:{self.name}")
        self.response_context = dict(context)
        context["adviseResponse"] = "adviseResponse"
        return response

    def advise_stream(self, stream, context):
        self.log.append(f"stream:{self.name}")
        self.stream_context = dict(context)
        context["fluxAdviseResponse"] = "fluxAdviseResponse"
        return stream


def test_params_reach_context_and_request_but_not_internal_keys(model_factory):
    spy = SpyAdvisor()
    client = ChatClient.builder(model_factory("Hello John")).default_system("Default system text.").default_advisors(spy).build()

    content = (
        client.prompt()
        .user("my name is John")
        .advisors(lambda a: a.param("key1", "value1").params({"key2": "value2"}))
        .call()
        .content()
    )

    assert content == "Hello John"
    assert spy.request_context["key1"] == "value1"
    assert spy.request_context["key2"] == "value2"

    assert dict(spy.request.advisor_params) == {"key1": "value1", "key2": "value2"}
    assert "adviseRequest" not in spy.request.advisor_params

    assert spy.response_context["key1"] == "value1"
    assert spy.response_context["adviseRequest"] == "adviseRequest"


def test_param_last_write_wins(model_factory):
    spy = SpyAdvisor()
    client = ChatClient.builder(model_factory()).default_advisors(lambda a: a.param("k", "default")).build()

    client.prompt("hi").advisors(spy).advisors(
        lambda a: a.param("k", "first"),
        lambda a: a.params({"k": "second"}),
    ).call()

    assert spy.request.advisor_params["k"] == "second"
    assert spy.request_context["k"] == "second"


def test_request_params_view_is_read_only(model_factory):
    spy = SpyAdvisor()
    client = ChatClient.builder(model_factory()).default_advisors(spy).build()
    client.prompt("hi").advisors(lambda a: a.param("k", "v")).call()

    with pytest.raises(TypeError):
        spy.request.advisor_params["k"] = "changed"


def test_default_advisors_run_before_per_call_advisors(model_factory):
    log = []
    client = (
        ChatClient.builder(model_factory())
        .default_advisors(SpyAdvisor("d1", log), SpyAdvisor("d2", log))
        .build()
    )

    client.prompt("hi").advisors(SpyAdvisor("c1", log)).call()
    assert log == ["req:d1", "req:d2", "req:c1", "resp:d1", "resp:d2", "resp:c1"]


def test_request_advisor_output_feeds_next_advisor(model_factory):
    class Prefix(Advisor):
        def __init__(self, p):
            self.p = p

        def advise_request(self, request, context):
            return request.with_system_text(self.p + request.system_text)

    model = model_factory()
    client = ChatClient.builder(model).default_system("S").default_advisors(Prefix("a"), Prefix("b")).build()
    client.prompt("hi").call()

    assert model.last_prompt.messages[0].content == "baS"


def test_context_written_on_request_is_visible_on_response_and_isolated(model_factory):
    class Writer(Advisor):
        def advise_request(self, request, context):
            context["marker"] = request.user_text
            return request

    seen = []

    class Reader(Advisor):
        def advise_response(self, response, context):
            seen.append(context.get("marker"))
            return response

    client = ChatClient.builder(model_factory()).default_advisors(Reader()).build()

    first = client.prompt("one").advisors(Writer()).call()
    second = client.prompt("two").call()

    assert seen == ["one", None]
    assert first.context["marker"] == "one"
    assert "marker" not in second.context


def test_response_advisor_can_rewrite_response(model_factory):
    class Upper(Advisor):
        def advise_response(self, response, context):
            return text_response(response.content.upper())

    client = ChatClient.builder(model_factory("hello")).default_advisors(Upper()).build()
    assert client.prompt("hi").call().content() == "HELLO"


def test_prompt_layout_system_history_user(model_factory):
    model = model_factory()
    client = ChatClient.builder(model).default_system("SYS").build()

    client.prompt().user("now").messages(assistant_message("earlier")).call()

    roles = [m.role for m in model.last_prompt.messages]
    assert roles == ["system", "assistant", "user"]
    assert model.last_prompt.messages[-1].content == "now"


def test_per_call_system_overrides_default(model_factory):
    model = model_factory()
    client = ChatClient.builder(model).default_system("SYS").build()
    client.prompt("hi").system("OTHER").call()
    assert model.last_prompt.messages[0].content == "OTHER"


def test_options_merge_per_call_over_defaults(model_factory):
    model = model_factory()
    client = ChatClient.builder(model).default_options(ChatOptions(model="m1", temperature=0.1)).build()

    client.prompt("hi").options(ChatOptions(temperature=0.9)).call()
    assert model.last_prompt.options == ChatOptions(model="m1", temperature=0.9)


def test_stream_runs_request_leg_eagerly_and_model_lazily(model_factory):
    spy = SpyAdvisor()
    model = model_factory("Hello John")
    client = ChatClient.builder(model).default_advisors(spy).build()

    resp = client.prompt("hi").advisors(lambda a: a.param("k", "v")).stream()

    assert spy.request is not None
    assert spy.stream_context["adviseRequest"] == "adviseRequest"
    assert model.prompts == []

    assert "".join(resp.content()) == "Hello John"
    assert len(model.prompts) == 1
    assert resp.context["fluxAdviseResponse"] == "fluxAdviseResponse"
    assert spy.response_context is None


def test_stream_and_call_give_same_content(model_factory):
    text = "The quick brown fox jumps"
    client_a = ChatClient.builder(model_factory(text)).default_system("S").build()
    client_b = ChatClient.builder(model_factory(text)).default_system("S").build()

    assert "".join(client_a.prompt("q").stream().content()) == client_b.prompt("q").call().content()


def test_model_failure_propagates(model_factory):
    class Broken(type(model_factory())):
        def call(self, prompt):
            raise ConnectionError("model down")

    client = ChatClient.builder(Broken()).build()
    with pytest.raises(ConnectionError, match="model down"):
        client.prompt("hi").call()


def test_advisors_rejects_junk(model_factory):
    client = ChatClient.builder(model_factory()).build()
    with pytest.raises(TypeError):
        client.prompt("hi").advisors(42)


def test_mutate_keeps_defaults(model_factory):
    log = []
    model = model_factory()
    base = ChatClient.builder(model).default_system("S").default_advisors(SpyAdvisor("d", log)).build()

    derived = base.mutate().default_advisors(SpyAdvisor("extra", log)).build()
    derived.prompt("hi").call()

    assert model.last_prompt.messages[0].content == "S"
    assert log[:2] == ["req:d", "req:extra"]
    assert len(base.default_advisors) == 1


class RequestOnly:
    def advise_request(self, request, context):
        context["request_only"] = True
        return request.with_system_text("from plain object")


class ResponseOnly:
    def __init__(self):
        self.seen = []

    def advise_response(self, response, context):
        self.seen.append(context.get("request_only"))
        return text_response(response.content + "!")


def test_plain_objects_with_some_legs_are_advisors(model_factory):
    model = model_factory("hello")
    tail = ResponseOnly()
    client = ChatClient.builder(model).default_advisors(RequestOnly()).build()

    out = client.prompt("hi").advisors(tail).call()

    assert model.last_prompt.messages[0].content == "from plain object"
    assert out.content() == "hello!"
    assert tail.seen == [True]


def test_plain_objects_without_stream_leg_pass_stream_through(model_factory):
    model = model_factory("one two")
    client = ChatClient.builder(model).default_advisors(RequestOnly(), ResponseOnly()).build()

    resp = client.prompt("hi").stream()
    assert "".join(resp.content()) == "one two"
    assert resp.context["request_only"] is True
