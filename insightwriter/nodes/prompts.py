"""
Prompt templates for the model-backed nodes.

All prompt constants are centralized here for easier iteration. Templates are
filled with str.format, so literal JSON braces are doubled.
"""

# =============================================================================
# ANALYSIS PROMPTS
# =============================================================================

SUMMARY_SYSTEM_PROMPT = "你是一个专业的内容分析师，擅长分析自媒体文章并提取关键信息。请始终返回有效的 JSON 格式。"

SUMMARY_PROMPT = """请分析以下微信公众号文章，提取关键信息并以 JSON 格式返回。

文章标题: {title}
文章内容: {content}

请返回以下 JSON 格式（不要包含 markdown 代码块标记）:
{{
  "summary": "文章摘要，100-200字，概括文章核心内容",
  "keyPoints": ["关键要点1", "关键要点2", "关键要点3"],
  "keywords": ["关键词1", "关键词2", "关键词3", "关键词4", "关键词5"],
  "highlights": ["文章亮点1", "文章亮点2"],
  "contentType": "内容类型，如：教程、测评、故事、观点、案例、干货等"
}}"""


INSIGHTS_SYSTEM_PROMPT = "你是一个资深的自媒体选题策划专家，擅长从热门内容中发现选题规律和创作机会。请始终返回有效的 JSON 格式。"

INSIGHT_SUMMARY_BLOCK = """
【文章{index}】{title}
- 摘要: {summary}
- 关键词: {keywords}
- 亮点: {highlights}
- 类型: {content_type}
"""

INSIGHTS_PROMPT = """你是一个资深的自媒体选题策划专家。基于以下关于「{keyword}」主题的 {article_count} 篇热门文章分析，请生成 {min_insights} 条以上的选题洞察建议。

{summary_text}

请分析这些文章的共同特点、内容趋势、用户偏好，并给出具体可执行的选题建议。

请返回以下 JSON 格式（不要包含 markdown 代码块标记）:
{{
  "insights": [
    {{
      "title": "洞察标题，简洁有力，10字以内",
      "description": "洞察描述，详细说明这个发现，50-100字",
      "evidence": "数据支撑或依据，说明为什么得出这个结论",
      "suggestedTopics": ["具体选题建议1", "具体选题建议2", "具体选题建议3"],
      "relatedArticles": ["相关的原文章标题1", "相关的原文章标题2"]
    }}
  ]
}}

要求:
1. 至少生成 {min_insights} 条洞察
2. 洞察要具体、可执行，不要泛泛而谈
3. 每条洞察都要有数据或案例支撑
4. 推荐选题要具体到可以直接使用的标题方向"""


# =============================================================================
# CREATION PROMPTS
# =============================================================================

STYLE_GUIDE = {
    "casual": "轻松活泼、口语化、多用网络流行语、适当使用表情符号",
    "professional": "专业严谨、逻辑清晰、数据支撑、适合职场人士阅读",
    "storytelling": "故事化叙述、有代入感、情感共鸣、引人入胜",
}

ARTICLE_SYSTEM_PROMPT = "你是一位资深的自媒体内容创作者，擅长撰写高质量、高传播性的公众号文章。请始终返回有效的 JSON 格式。"

ARTICLE_PROMPT = """你是一位资深的自媒体内容创作者，擅长撰写高质量的公众号文章。

基于以下选题洞察，请创作一篇完整的文章：

【选题洞察】
- 洞察标题: {insight_title}
- 洞察描述: {insight_description}
- 推荐选题方向: {suggested_topics}
- 相关参考文章: {related_articles}
- 核心关键词: {keyword}

【创作要求】
- 文章风格: {style_guide}
- 字数要求: {min_words}-{max_words}字
- 结构要求: 包含引人入胜的开头、清晰的正文结构、有力的结尾
- 内容要求: 有干货、有案例、有观点、易于传播
- 正文段落必须使用 <p> 标签包裹，配图会在段落之间自动插入，不要自行添加图片或图片标记

请返回以下 JSON 格式（不要包含 markdown 代码块标记）:
{{
  "title": "文章标题，要吸引眼球，可以使用数字、疑问句等技巧",
  "content": "文章正文内容，使用 HTML 格式，包含 <p>、<h2>、<h3>、<strong>、<ul>、<li> 等标签",
  "summary": "文章摘要，100字以内，用于预览展示",
  "imageKeywords": ["配图关键词1(英文)", "配图关键词2(英文)", "配图关键词3(英文)"]
}}"""


IMAGE_PLAN_SYSTEM_PROMPT = "你是一位专业的图片创意总监，擅长为文章设计配图方案。你需要根据文章内容生成高质量的图片提示词，并合理安排图片在文章中的位置。请始终返回有效的 JSON 格式。"

IMAGE_PLAN_PROMPT = """你是一位专业的图片创意总监，擅长为文章配图。请根据以下文章内容，生成 {image_count} 张配图的详细提示词。

【文章标题】
{title}

【文章内容】
{plain_content}

【文章段落数】
共 {total_paragraphs} 个段落

【要求】
1. 生成 {image_count} 张图片的提示词
2. 每张图片的提示词必须是英文，详细描述画面内容、风格、色调等
3. 提示词要与文章上下文紧密相关，能够增强文章的表达力
4. 合理安排图片插入位置，根据文章逻辑和内容节奏决定
5. 图片风格要统一，适合作为文章配图
6. 提示词长度在 50-150 个英文单词之间
7. 图片中不要出现任何文字

请返回以下 JSON 格式（不要包含 markdown 代码块标记）:
{{
  "images": [
    {{
      "prompt": "详细的英文图片提示词，描述画面内容、风格、光线、色调等",
      "insertAfterParagraph": 段落编号（1-{total_paragraphs}之间的数字，表示插入在第几段之后）,
      "description": "图片的中文简短描述，用于显示在图片下方，10-20字"
    }}
  ]
}}

注意：
- insertAfterParagraph 必须是 1 到 {total_paragraphs} 之间的数字
- 图片位置要分散，不要都集中在一起
- 第一张图片建议放在文章开头部分（前1/3）
- 最后一张图片不要放在文章最后一段之后"""
