"""
提示词加载器

从 YAML 文件加载提示词配置，使用 Jinja2 渲染模板变量。
"""

import yaml
from pathlib import Path
from jinja2 import Template, TemplateError, StrictUndefined
from typing import Dict, Any, Optional
import threading


class PromptLoadError(Exception):
    """提示词加载异常"""
    pass


class PromptRenderError(Exception):
    """提示词渲染异常"""
    pass


class PromptLoader:
    """
    提示词加载器

    YAML 文件结构：
        system_prompt: 系统提示词（必需）
        templates:     其他命名模板，如 user_prompt
        variables:     模板变量的默认值

    使用示例：
        loader = PromptLoader()
        system_prompt = loader.render("assignment_grading")
        user_prompt = loader.render("assignment_grading", "user_prompt", assignment_title="...")
    """

    def __init__(self, templates_dir: Optional[Path] = None, enable_cache: bool = True):
        """
        Args:
            templates_dir: 提示词模板目录路径，默认为 prompts/templates/
            enable_cache: 是否启用缓存
        """
        if templates_dir is None:
            self.templates_dir = Path(__file__).parent / "templates"
        else:
            self.templates_dir = Path(templates_dir)
        self.enable_cache = enable_cache
        self._cache: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def load(self, name: str) -> Dict[str, Any]:
        """
        加载提示词配置

        Args:
            name: 提示词名称（不含 .yaml 后缀）

        Raises:
            PromptLoadError: 文件不存在或格式错误
        """
        with self._lock:
            if self.enable_cache and name in self._cache:
                return self._cache[name]

            file_path = self.templates_dir / f"{name}.yaml"
            if not file_path.exists():
                raise PromptLoadError(f"Prompt template not found: {file_path}")

            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise PromptLoadError(f"Failed to parse YAML: {e}")

            if not isinstance(config, dict) or 'system_prompt' not in config:
                raise PromptLoadError(f"Missing required field 'system_prompt' in {name}.yaml")

            if self.enable_cache:
                self._cache[name] = config
            return config

    def render(self, name: str, template_key: str = "system_prompt", **variables) -> str:
        """
        渲染提示词模板

        Args:
            name: 提示词名称
            template_key: 要渲染的模板键，默认为 system_prompt
            **variables: 模板变量（覆盖 YAML 中的默认值）

        Raises:
            PromptRenderError: 模板不存在或渲染失败
        """
        config = self.load(name)

        if template_key == "system_prompt":
            template_content = config.get('system_prompt', '')
        else:
            template_content = config.get('templates', {}).get(template_key, '')

        if not template_content:
            raise PromptRenderError(f"Template '{template_key}' not found in {name}.yaml")

        merged_vars = {**config.get('variables', {}), **variables}

        try:
            template = Template(template_content, undefined=StrictUndefined)
            return template.render(**merged_vars).strip()
        except TemplateError as e:
            raise PromptRenderError(f"Failed to render template: {e}")

    def get_config(self, name: str, key: str, default: Any = None) -> Any:
        """获取提示词配置中的特定值"""
        return self.load(name).get(key, default)

    def clear_cache(self, name: Optional[str] = None):
        """清除缓存，name 为 None 时清除全部"""
        with self._lock:
            if name:
                self._cache.pop(name, None)
            else:
                self._cache.clear()


# 全局默认实例
prompt_loader = PromptLoader(enable_cache=True)
