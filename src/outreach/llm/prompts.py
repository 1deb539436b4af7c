from __future__ import annotations

JOB_PARSE_PROMPT = """
Parse the following job description and extract key information in JSON format:

Job Description:
{job_description}

Please extract and return ONLY a valid JSON object with these fields:
- title: job title
- company: company name
- skills: array of required skills
- experience: years of experience required
- location: job location
- salary: salary range if mentioned
- requirements: array of key requirements

Example format:
{{
  "title": "Software Engineer",
  "company": "Tech Corp",
  "skills": ["React", "Node.js", "TypeScript"],
  "experience": "3+ years",
  "location": "San Francisco, CA",
  "salary": "$100k-120k",
  "requirements": ["Bachelor's degree", "Problem solving skills"]
}}
""".strip()

COVER_LETTER_PROMPT = """
Generate a concise, one-paragraph professional cover letter for the following job:

Job Title: {title}
Company: {company}
Required Skills: {skills}
Experience: {experience}
Location: {location}
Sender Profile: {sender_title}
Job Description:
{job_description}

The letter should:
- Be addressed to the hiring manager (no specific name)
- Express enthusiasm for the role and the company
- Include no placeholders
- Convey confidence and eagerness to contribute
- Be formatted as a simple HTML <p> paragraph (no headers, no complex styling)
- End with Regards, {sender_name}
""".strip()

LETTER_ANALYSIS_PROMPT = """
Analyze this one-paragraph cover letter and provide improvement suggestions:

Cover Letter:
{cover_letter}

Job Skills:
{skills}

Respond in pure JSON with:
{{
  "strengths": [string],
  "suggestions": [string],
  "matchScore": number (0-100),
  "personalization": {{ "insight": string }}
}}
""".strip()
