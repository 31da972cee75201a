"""Run several independent conversations concurrently over one shared client."""

import time

from dialog_core import ScriptedDriver, communicate_many

if __name__ == "__main__":
    prompts = [
        "你好，请介绍一下你自己",
        "请用诗歌形式描述春天",
        "解释量子力学中的叠加原理",
        "写一段关于人工智能未来的短文",
    ]
    start = time.time()
    results = communicate_many([ScriptedDriver([p]) for p in prompts], max_tokens=500)
    for prompt, result in zip(prompts, results):
        if result.ok:
            print(f"Prompt: {prompt!r}\nResponse: {result.conversation[-1].content}\n")
        else:
            print(f"Prompt {prompt!r} 错误: {result.error}")
    print(f"全部请求完成，用时: {time.time() - start:.2f}s")
